"""
Lightweight migration runner for ``vaultboard/migrations/*.sql``.

Usage:
    vaultboard migrate --status        # show applied vs pending
    vaultboard migrate                 # apply all pending
    vaultboard migrate --dry-run

No framework dependency — just SQL files, SHA-256 checksums, and transactions.
"""

from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path

from psycopg2.extras import RealDictCursor

from vaultboard.db.connection import get_connection

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "migrations"

# Pattern: 001_name.sql, 015b_name.sql, etc.
_MIGRATION_RE = re.compile(r"^(\d+[a-z]?)_.+\.sql$")

REQUIRED_TABLES = ["user_roles", "knowledge_entries", "access_logs"]


def discover(migrations_dir: Path | None = None) -> list[tuple[str, Path]]:
    """Return sorted list of (version, path) for all .sql files."""
    d = migrations_dir or MIGRATIONS_DIR
    results: list[tuple[str, Path]] = []
    for f in sorted(d.glob("*.sql")):
        m = _MIGRATION_RE.match(f.name)
        if m:
            results.append((m.group(1), f))
    return results


def _sha256(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


def _ensure_table(conn) -> None:
    cur = conn.cursor()
    cur.execute("""
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version     TEXT PRIMARY KEY,
            filename    TEXT NOT NULL,
            applied_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            checksum    TEXT
        )
    """)
    conn.commit()


def _applied(conn) -> dict[str, dict]:
    cur = conn.cursor(cursor_factory=RealDictCursor)
    cur.execute("SELECT version, filename, applied_at, checksum FROM schema_migrations ORDER BY version")
    return {r["version"]: dict(r) for r in cur.fetchall()}


def status(migrations_dir: Path | None = None) -> list[dict]:
    """Return list of dicts with version, filename, status, applied_at."""
    all_files = discover(migrations_dir)
    with get_connection() as conn:
        _ensure_table(conn)
        applied = _applied(conn)

    rows: list[dict] = []
    for version, path in all_files:
        if version in applied:
            db_checksum = applied[version].get("checksum")
            drift = db_checksum and db_checksum != _sha256(path)
            rows.append({
                "version": version,
                "filename": path.name,
                "status": "DRIFT" if drift else "applied",
                "applied_at": applied[version]["applied_at"],
            })
        else:
            rows.append({
                "version": version,
                "filename": path.name,
                "status": "pending",
                "applied_at": None,
            })
    return rows


def apply(dry_run: bool = False, migrations_dir: Path | None = None) -> list[str]:
    """Apply pending migrations in order. Returns the applied version strings."""
    all_files = discover(migrations_dir)

    with get_connection() as conn:
        _ensure_table(conn)
        applied = _applied(conn)
        to_apply = [(v, path) for v, path in all_files if v not in applied]

        if not to_apply:
            logger.info("No pending migrations")
            return []

        applied_versions: list[str] = []
        for v, path in to_apply:
            if dry_run:
                logger.info("[dry-run] Would apply %s (version %s)", path.name, v)
                applied_versions.append(v)
                continue

            cur = conn.cursor()
            try:
                cur.execute(path.read_text())
                cur.execute(
                    "INSERT INTO schema_migrations (version, filename, checksum) VALUES (%s, %s, %s) "
                    "ON CONFLICT (version) DO NOTHING",
                    (v, path.name, _sha256(path)),
                )
                conn.commit()
                logger.info("Applied %s (version %s)", path.name, v)
                applied_versions.append(v)
            except Exception as e:
                conn.rollback()
                logger.error("Migration %s failed: %s", path.name, e)
                raise

        return applied_versions


def missing_tables() -> list[str]:
    """Required tables not present in the public schema."""
    with get_connection() as conn:
        cur = conn.cursor()
        cur.execute(
            "SELECT table_name FROM information_schema.tables WHERE table_schema = 'public'"
        )
        existing = {row[0] for row in cur.fetchall()}
    return [t for t in REQUIRED_TABLES if t not in existing]
