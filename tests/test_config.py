"""Tests for vaultboard.config — centralized configuration."""

from pathlib import Path

import pytest

from vaultboard.config import (
    DEV_FALLBACK_SECRET,
    Config,
    DatabaseConfig,
    StorageConfig,
    get_config,
    reset_config,
    resolve_encryption_secret,
)
from vaultboard.errors import SecretMissing

GOOD_SECRET = "a-production-secret-that-is-long-enough"


@pytest.fixture(autouse=True)
def clean_config(clean_env):
    """Reset config singleton and VaultBoard env vars between tests."""
    reset_config()
    yield
    reset_config()


class TestDatabaseConfig:
    def test_defaults(self):
        db = DatabaseConfig()
        assert db.host == ""
        assert db.port == 5432
        assert db.name == "vaultboard"

    def test_dsn(self):
        db = DatabaseConfig(host="db.example.com", port=5433, name="test", user="tester")
        assert "dbname=test" in db.dsn
        assert "host=db.example.com" in db.dsn
        assert "port=5433" in db.dsn
        assert "user=tester" in db.dsn

    def test_dsn_password(self):
        assert "password" not in DatabaseConfig(password="").dsn
        assert "password=secret" in DatabaseConfig(password="secret").dsn

    def test_dict(self):
        d = DatabaseConfig(host="localhost", port=5432, name="test", user="u").dict
        assert d == {"dbname": "test", "port": 5432, "host": "localhost", "user": "u"}

    def test_frozen(self):
        db = DatabaseConfig()
        with pytest.raises(AttributeError):
            db.host = "other"  # type: ignore[misc]


class TestStorageConfig:
    def test_upload_limit(self):
        assert StorageConfig().max_upload_bytes == 10 * 1024 * 1024


class TestConfig:
    def test_api_url(self):
        assert Config().api_url == "http://127.0.0.1:9200"

    def test_is_production(self):
        assert not Config().is_production
        assert Config(env="production").is_production


class TestResolveEncryptionSecret:
    def test_configured_secret_used(self):
        assert resolve_encryption_secret("production", GOOD_SECRET) == GOOD_SECRET

    def test_short_secret_rejected_everywhere(self):
        for env in ("development", "test", "production"):
            with pytest.raises(SecretMissing):
                resolve_encryption_secret(env, "too-short")

    def test_missing_in_production_fails(self):
        with pytest.raises(SecretMissing):
            resolve_encryption_secret("production", None)

    def test_missing_in_development_falls_back(self):
        assert resolve_encryption_secret("development", None) == DEV_FALLBACK_SECRET
        assert resolve_encryption_secret("test", "") == DEV_FALLBACK_SECRET


class TestGetConfig:
    def test_returns_config(self):
        assert isinstance(get_config(), Config)

    def test_singleton(self):
        assert get_config() is get_config()

    def test_env_override_db(self, monkeypatch):
        monkeypatch.setenv("VAULTBOARD_DB_HOST", "db.remote.com")
        monkeypatch.setenv("VAULTBOARD_DB_PORT", "5433")
        monkeypatch.setenv("VAULTBOARD_DB_NAME", "custom_db")
        cfg = get_config()
        assert cfg.db.host == "db.remote.com"
        assert cfg.db.port == 5433
        assert cfg.db.name == "custom_db"

    def test_env_override_storage(self, monkeypatch, tmp_path):
        monkeypatch.setenv("VAULTBOARD_BLOB_DIR", str(tmp_path))
        monkeypatch.setenv("VAULTBOARD_PUBLIC_URL", "https://vault.example.com")
        cfg = get_config()
        assert cfg.storage.blob_dir == Path(tmp_path)
        assert cfg.storage.public_url == "https://vault.example.com"

    def test_env_override_port(self, monkeypatch):
        monkeypatch.setenv("VAULTBOARD_PORT", "9300")
        cfg = get_config()
        assert cfg.api_port == 9300
        assert cfg.storage.public_url == "http://127.0.0.1:9300"

    def test_cron_secret(self, monkeypatch):
        monkeypatch.setenv("VAULTBOARD_CRON_SECRET", "cron-token")
        assert get_config().cron_secret == "cron-token"

    def test_production_requires_key(self, monkeypatch):
        monkeypatch.setenv("VAULTBOARD_ENV", "production")
        with pytest.raises(SecretMissing):
            get_config()

    def test_production_with_key(self, monkeypatch):
        monkeypatch.setenv("VAULTBOARD_ENV", "production")
        monkeypatch.setenv("VAULTBOARD_ENCRYPTION_KEY", GOOD_SECRET)
        cfg = get_config()
        assert cfg.is_production
        assert cfg.encryption_secret == GOOD_SECRET

    def test_invalid_env(self, monkeypatch):
        monkeypatch.setenv("VAULTBOARD_ENV", "staging")
        with pytest.raises(ValueError):
            get_config()
