"""
Pipeline de sincronización one-way: Google Drive -> object storage (R2).

Descubre links de Drive en el catálogo (Google Sheets), descarga cada archivo
y lo sube a R2 en una key determinística, registrando en un ledger qué ya se
migró.

Objetivos de diseño:
- Idempotencia: se puede ejecutar N veces sin descargar ni subir dos veces.
- Sin crédito parcial: un asset cuenta solo si download y upload salieron bien.
- Corridas acotadas (cap) para respetar límites de tiempo del scheduler.
- Ledger intercambiable: Postgres (durable) o documento JSON (batch local).
"""
