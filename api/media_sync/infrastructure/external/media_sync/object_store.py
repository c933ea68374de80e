"""
Escritura de assets en object storage (Cloudflare R2 vía API S3 / boto3).

- Key determinística por asset: thumbs/{id}.jpg o videos/{id}.mp4.
- Un único intento por upload: sin reintentos internos (ni de botocore).
- Sobrescribir la misma key es idempotente: re-subir tras un fallo del ledger
  es inofensivo.
"""

from __future__ import annotations

from typing import Any, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from media_sync.shared.exceptions.sync import SyncConfigError, UploadError

from .types import AssetReference


def build_r2_client(
    *,
    endpoint: str,
    access_key_id: str,
    secret_access_key: str,
    connect_timeout_s: float = 10.0,
    read_timeout_s: float = 120.0,
) -> Any:
    """Crea un cliente S3 apuntando al endpoint de R2."""
    missing = [
        name
        for name, value in (
            ("R2_ENDPOINT", endpoint),
            ("R2_ACCESS_KEY_ID", access_key_id),
            ("R2_SECRET_ACCESS_KEY", secret_access_key),
        )
        if not value
    ]
    if missing:
        raise SyncConfigError(f"Faltan credenciales de R2: {', '.join(missing)}")

    config = BotoConfig(
        connect_timeout=connect_timeout_s,
        read_timeout=read_timeout_s,
        retries={"max_attempts": 1, "mode": "standard"},
    )
    return boto3.client(
        "s3",
        region_name="auto",
        endpoint_url=endpoint,
        aws_access_key_id=access_key_id,
        aws_secret_access_key=secret_access_key,
        config=config,
    )


class ObjectStoreUploader:
    def __init__(self, client: Any, bucket: str) -> None:
        if not bucket:
            raise SyncConfigError("Falta R2_BUCKET_NAME")
        self._client = client
        self._bucket = bucket

    @property
    def bucket(self) -> str:
        return self._bucket

    def upload(self, key: str, body: bytes, content_type: str) -> None:
        """
        PUT del objeto.

        Raises:
            UploadError: cualquier fallo de transporte o autorización.
        """
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "ClientError")
            raise UploadError(key, str(code)) from e
        except BotoCoreError as e:
            raise UploadError(key, type(e).__name__) from e

        logger.debug(f"R2 ✓ s3://{self._bucket}/{key} ({len(body)} bytes, {content_type})")

    def upload_asset(self, asset: AssetReference, body: bytes) -> str:
        """Sube un asset a su key determinística y retorna la key."""
        key = asset.storage_key
        self.upload(key, body, asset.content_type)
        return key


def build_uploader(
    *,
    endpoint: str,
    access_key_id: str,
    secret_access_key: str,
    bucket: str,
    connect_timeout_s: float = 10.0,
    read_timeout_s: float = 120.0,
    client: Optional[Any] = None,
) -> ObjectStoreUploader:
    if client is None:
        client = build_r2_client(
            endpoint=endpoint,
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            connect_timeout_s=connect_timeout_s,
            read_timeout_s=read_timeout_s,
        )
    return ObjectStoreUploader(client, bucket)
