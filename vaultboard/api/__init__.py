"""VaultBoard HTTP API (FastAPI)."""
