"""Database connection management for VaultBoard."""

from vaultboard.db.connection import get_connection, get_pool, release_connection

__all__ = ["get_connection", "get_pool", "release_connection"]
