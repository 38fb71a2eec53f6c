"""
Root-level shared test fixtures.

Inherited by every test suite that runs from the repo root.
"""

from __future__ import annotations

import uuid

import pytest

from vaultboard.config import reset_config


@pytest.fixture
def test_prefix():
    """Unique prefix for test isolation."""
    return f"test_{uuid.uuid4().hex[:8]}"


@pytest.fixture
def clean_env(monkeypatch):
    """Remove VaultBoard env vars that leak between tests."""
    for key in [
        "VAULTBOARD_ENV",
        "VAULTBOARD_ENCRYPTION_KEY",
        "VAULTBOARD_DB_HOST",
        "VAULTBOARD_DB_PORT",
        "VAULTBOARD_DB_NAME",
        "VAULTBOARD_DB_USER",
        "VAULTBOARD_DB_PASSWORD",
        "VAULTBOARD_BLOB_DIR",
        "VAULTBOARD_PUBLIC_URL",
        "VAULTBOARD_CRON_SECRET",
        "VAULTBOARD_PORT",
        "VAULTBOARD_HOST",
        "VAULTBOARD_WORKSPACE",
    ]:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def _reset_config_singleton():
    reset_config()
    yield
    reset_config()
