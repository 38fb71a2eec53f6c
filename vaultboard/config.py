"""
Centralized configuration for VaultBoard.

All configuration is loaded from environment variables with sensible defaults.
The encryption secret is resolved once here and handed to the components that
need it; nothing reads it from the environment at call time.

Usage:
    from vaultboard.config import get_config
    cfg = get_config()
    print(cfg.db.name)        # "vaultboard"
    print(cfg.is_production)  # False unless VAULTBOARD_ENV=production
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from vaultboard.errors import SecretMissing

logger = logging.getLogger(__name__)

MIN_SECRET_BYTES = 32

# Only ever used outside production.
DEV_FALLBACK_SECRET = "vaultboard-dev-fallback-secret-key-32b"

VALID_ENVIRONMENTS = ("development", "test", "production")


@dataclass(frozen=True)
class DatabaseConfig:
    """PostgreSQL connection parameters."""

    host: str = ""  # empty = Unix socket (peer auth); set to 127.0.0.1 for TCP
    port: int = 5432
    name: str = "vaultboard"
    user: str = "vaultboard"
    password: str = ""

    @property
    def dsn(self) -> str:
        """Return a psycopg2-compatible DSN string."""
        parts = [f"dbname={self.name}"]
        if self.host:
            parts.append(f"host={self.host}")
        parts.append(f"port={self.port}")
        if self.user:
            parts.append(f"user={self.user}")
        if self.password:
            parts.append(f"password={self.password}")
        return " ".join(parts)

    @property
    def dict(self) -> dict[str, str | int]:
        """Return a psycopg2.connect() kwargs dict."""
        d: dict[str, str | int] = {
            "dbname": self.name,
            "port": self.port,
        }
        if self.host:
            d["host"] = self.host
        if self.user:
            d["user"] = self.user
        if self.password:
            d["password"] = self.password
        return d


@dataclass(frozen=True)
class StorageConfig:
    """Blob store location and upload limits."""

    blob_dir: Path = field(default_factory=lambda: Path.home() / "vaultboard" / "blobs")
    public_url: str = "http://127.0.0.1:9200"
    max_upload_bytes: int = 10 * 1024 * 1024


@dataclass(frozen=True)
class Config:
    """Top-level VaultBoard configuration."""

    env: str = "development"
    workspace: Path = field(default_factory=lambda: Path.home() / "vaultboard")

    # Content protection
    encryption_secret: str = DEV_FALLBACK_SECRET

    db: DatabaseConfig = field(default_factory=DatabaseConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    # Bearer token expected by the scheduled expiration sweep endpoint
    cron_secret: str = ""

    api_host: str = "127.0.0.1"
    api_port: int = 9200

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def api_url(self) -> str:
        return f"http://{self.api_host}:{self.api_port}"


def resolve_encryption_secret(env: str, configured: str | None) -> str:
    """Pick the content-protection secret for an environment.

    Production requires an explicit secret of at least 32 bytes. Elsewhere a
    missing secret falls back to the development key. An explicitly configured
    secret that is too short is rejected everywhere.
    """
    if configured:
        if len(configured.encode("utf-8")) < MIN_SECRET_BYTES:
            raise SecretMissing(
                f"VAULTBOARD_ENCRYPTION_KEY must be at least {MIN_SECRET_BYTES} bytes"
            )
        return configured

    if env == "production":
        raise SecretMissing("VAULTBOARD_ENCRYPTION_KEY must be set in production")

    logger.warning("VAULTBOARD_ENCRYPTION_KEY not set; using development fallback key")
    return DEV_FALLBACK_SECRET


# Singleton
_config: Config | None = None


def get_config() -> Config:
    """Get or create the singleton config from environment variables."""
    global _config
    if _config is not None:
        return _config
    _config = _load_from_env()
    return _config


def _load_from_env() -> Config:
    """Load configuration from environment variables."""
    env = os.environ.get("VAULTBOARD_ENV", "development").lower()
    if env not in VALID_ENVIRONMENTS:
        raise ValueError(f"VAULTBOARD_ENV must be one of {VALID_ENVIRONMENTS}, got {env!r}")

    workspace = Path(os.environ.get("VAULTBOARD_WORKSPACE", Path.home() / "vaultboard"))
    api_port = int(os.environ.get("VAULTBOARD_PORT", "9200"))

    db = DatabaseConfig(
        host=os.environ.get("VAULTBOARD_DB_HOST", ""),
        port=int(os.environ.get("VAULTBOARD_DB_PORT", "5432")),
        name=os.environ.get("VAULTBOARD_DB_NAME", "vaultboard"),
        user=os.environ.get("VAULTBOARD_DB_USER", os.environ.get("USER", "vaultboard")),
        password=os.environ.get("VAULTBOARD_DB_PASSWORD", ""),
    )

    storage = StorageConfig(
        blob_dir=Path(os.environ.get("VAULTBOARD_BLOB_DIR", workspace / "blobs")),
        public_url=os.environ.get("VAULTBOARD_PUBLIC_URL", f"http://127.0.0.1:{api_port}"),
    )

    return Config(
        env=env,
        workspace=workspace,
        encryption_secret=resolve_encryption_secret(
            env, os.environ.get("VAULTBOARD_ENCRYPTION_KEY")
        ),
        db=db,
        storage=storage,
        cron_secret=os.environ.get("VAULTBOARD_CRON_SECRET", ""),
        api_host=os.environ.get("VAULTBOARD_HOST", "127.0.0.1"),
        api_port=api_port,
    )


def reset_config() -> None:
    """Reset the singleton config (for testing)."""
    global _config
    _config = None
