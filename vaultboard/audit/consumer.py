"""
Audit stream consumer — persists queued access events into access_logs.

Run as a long-lived worker:
    vaultboard audit-consumer
"""

from __future__ import annotations

import logging
from datetime import datetime

from vaultboard.audit.logger import AUDIT_STREAM, write_access_log
from vaultboard.events.consumers.base import BaseConsumer

logger = logging.getLogger(__name__)


class AccessLogConsumer(BaseConsumer):
    stream = AUDIT_STREAM
    group = "audit-writers"
    consumer_name = "audit-writer-0"

    def handle(self, event: dict) -> None:
        payload = event.get("payload") or {}
        entry_id = payload.get("entry_id")
        action = payload.get("action")
        if not entry_id or not action:
            # Malformed; acknowledge so it is not redelivered forever.
            logger.warning("Dropping malformed audit event %s", event.get("id"))
            return

        accessed_at = payload.get("accessed_at")
        result = write_access_log(
            entry_id,
            payload.get("principal_id"),
            action,
            ip_address=payload.get("ip_address"),
            user_agent=payload.get("user_agent"),
            accessed_at=datetime.fromisoformat(accessed_at) if accessed_at else None,
        )
        if result is None:
            # Leave the event pending so it is retried.
            raise RuntimeError(f"access log write failed for event {event.get('id')}")
