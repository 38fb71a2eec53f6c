"""
VaultBoard Audit Trail — append-only access log for knowledge entries.

Every view, create, update, delete and export of an entry is recorded. Writes
are best-effort and decoupled from the entry operation that triggered them:
``record`` publishes to the ``audit`` event stream (persisted later by
``AccessLogConsumer``) and only writes inline when the bus is unavailable.
Nothing in this module raises to its caller.

Usage:
    from vaultboard.audit.logger import record, stats_for, mask_origin

    record(entry_id, principal_id, "view", Origin(ip_address="10.0.0.7"))
    stats = stats_for(entry_id)
"""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from collections.abc import Iterable
from datetime import UTC, datetime

from psycopg2.extras import RealDictCursor

from vaultboard.audit.models import AccessAction, AccessLogEntry, Origin
from vaultboard.events.bus import publish

logger = logging.getLogger(__name__)

AUDIT_STREAM = "audit"

# Lazy connection resolution so tests can inject a factory
_conn_factory = None


def _get_connection():
    if _conn_factory is not None:
        return _conn_factory()

    from vaultboard.db.connection import get_pool

    return get_pool().getconn()


def _release_connection(conn):
    if _conn_factory is not None:
        return
    try:
        from vaultboard.db.connection import get_pool

        get_pool().putconn(conn)
    except Exception:
        conn.close()


def set_connection_factory(factory):
    """Override connection factory for testing."""
    global _conn_factory
    _conn_factory = factory


def reset_connection_factory():
    """Reset connection factory to default."""
    global _conn_factory
    _conn_factory = None


def write_access_log(
    entry_id: str,
    principal_id: str | None,
    action: str,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
    accessed_at: datetime | None = None,
) -> dict | None:
    """Insert one access_logs row.

    Returns {"id": str, "accessed_at": str} on success, None on failure.
    """
    log_id = str(uuid.uuid4())
    accessed_at = accessed_at or datetime.now(UTC)
    try:
        conn = _get_connection()
        try:
            cur = conn.cursor()
            # Events queued before their entry was deleted find no parent row
            # and are dropped; the cascade would have removed them anyway.
            cur.execute(
                """
                INSERT INTO access_logs
                    (id, entry_id, accessed_by, action, accessed_at, ip_address, user_agent)
                SELECT %s, %s, %s, %s, %s, %s, %s
                WHERE EXISTS (SELECT 1 FROM knowledge_entries WHERE id = %s)
                """,
                (
                    log_id,
                    entry_id,
                    principal_id,
                    action,
                    accessed_at,
                    ip_address,
                    user_agent,
                    entry_id,
                ),
            )
            inserted = cur.rowcount != 0
            conn.commit()
        finally:
            _release_connection(conn)
        if not inserted:
            logger.info("Audit: entry %s no longer exists, %s event dropped", entry_id, action)
            return {"id": None, "accessed_at": accessed_at.isoformat(), "skipped": True}
        return {"id": log_id, "accessed_at": accessed_at.isoformat()}
    except Exception as e:
        logger.warning("Audit write_access_log failed: %s", e)
        return None


def record(
    entry_id: str,
    principal_id: str | None,
    action: str | AccessAction,
    origin: Origin | None = None,
) -> dict | None:
    """Record an access event without ever failing the caller.

    Returns {"queued": <stream id>} when handed to the event bus,
    {"id": ..., "accessed_at": ...} when written inline, None when dropped.
    """
    try:
        act = AccessAction(action)
    except ValueError:
        logger.warning("Audit record: unknown action %r for entry %s", action, entry_id)
        return None

    origin = origin or Origin()
    accessed_at = datetime.now(UTC)
    payload = {
        "entry_id": entry_id,
        "principal_id": principal_id,
        "action": act.value,
        "accessed_at": accessed_at.isoformat(),
        "ip_address": origin.ip_address,
        "user_agent": origin.user_agent,
    }
    msg_id = publish(
        AUDIT_STREAM,
        f"entry.{act.value}",
        payload,
        source="audit",
        actor=principal_id or "system",
    )
    if msg_id:
        return {"queued": msg_id}

    return write_access_log(
        entry_id,
        principal_id,
        act.value,
        ip_address=origin.ip_address,
        user_agent=origin.user_agent,
        accessed_at=accessed_at,
    )


def _row_to_entry(row: dict) -> AccessLogEntry:
    return AccessLogEntry(
        id=str(row["id"]),
        entry_id=str(row["entry_id"]),
        principal_id=str(row["accessed_by"]) if row.get("accessed_by") else None,
        action=row["action"],
        accessed_at=row["accessed_at"],
        ip_address=row.get("ip_address"),
        user_agent=row.get("user_agent"),
    )


def _query_logs(column: str, value: str, limit: int) -> list[AccessLogEntry]:
    try:
        conn = _get_connection()
        try:
            cur = conn.cursor(cursor_factory=RealDictCursor)
            cur.execute(
                f"""
                SELECT id, entry_id, accessed_by, action, accessed_at, ip_address, user_agent
                FROM access_logs
                WHERE {column} = %s
                ORDER BY accessed_at DESC
                LIMIT %s
                """,
                (value, limit),
            )
            rows = cur.fetchall()
        finally:
            _release_connection(conn)
        return [_row_to_entry(r) for r in rows]
    except Exception as e:
        logger.warning("Audit query on %s failed: %s", column, e)
        return []


def access_logs(entry_id: str, limit: int = 500) -> list[AccessLogEntry]:
    """Access events for one entry, newest first."""
    return _query_logs("entry_id", entry_id, limit)


def access_logs_by_principal(principal_id: str, limit: int = 500) -> list[AccessLogEntry]:
    """Access events performed by one principal, newest first."""
    return _query_logs("accessed_by", principal_id, limit)


def compute_stats(logs: Iterable[AccessLogEntry]) -> dict:
    """Aggregate access events into per-action counts and principal figures."""
    logs = list(logs)
    by_action = Counter(log.action for log in logs)
    by_principal = Counter(log.principal_id for log in logs if log.principal_id)
    latest = max((log.accessed_at for log in logs), default=None)
    most_common = by_principal.most_common(1)

    return {
        "total_events": len(logs),
        "total_views": by_action[AccessAction.VIEW],
        "total_creates": by_action[AccessAction.CREATE],
        "total_updates": by_action[AccessAction.UPDATE],
        "total_deletes": by_action[AccessAction.DELETE],
        "total_exports": by_action[AccessAction.EXPORT],
        "unique_users": len(by_principal),
        "most_accessed_by": most_common[0][0] if most_common else None,
        "last_accessed_at": latest.isoformat() if latest else None,
    }


def stats_for(entry_id: str) -> dict:
    """Access statistics for one entry. Entries without events get zero counts."""
    return compute_stats(access_logs(entry_id))


def mask_origin(ip_address: str | None) -> str:
    """Hide all but the first segment of a client address.

    192.168.1.1 -> 192.xxx.xxx.xxx, 2001:db8::1 -> 2001:xxxx:...
    """
    if not ip_address:
        return "Unknown"

    parts = ip_address.split(".")
    if len(parts) == 4:
        return f"{parts[0]}.xxx.xxx.xxx"

    segments = ip_address.split(":")
    if len(segments) > 1:
        return f"{segments[0]}:xxxx:..."

    return "xxx.xxx.xxx.xxx"
