"""
VaultBoard Event Bus — Redis Streams based publish-subscribe.

Used to take side-channel work (audit rows, entry notifications) off the
request path. Publishing never raises; callers get None when the bus is
disabled or Redis is unreachable and decide on their own fallback.

Streams:
  vaultboard:events:audit    — entry access events (view, create, update, delete, export)
  vaultboard:events:entries  — entry lifecycle notifications
  vaultboard:events:system   — system lifecycle (boot, sweep, errors)

Envelope format:
  {
    "timestamp": "ISO 8601",
    "type": "<event_type>",
    "source": "<producing module>",
    "actor": "<principal id or system>",
    "payload": "<JSON string>",
    "correlation_id": "<optional trace ID>"
  }

Usage:
    from vaultboard.events.bus import publish, subscribe

    msg_id = publish("audit", "entry.view", {"entry_id": "..."}, source="entries")
"""

from __future__ import annotations

import json
import logging
import os
import time
from collections.abc import Callable
from datetime import UTC, datetime

logger = logging.getLogger(__name__)

# Feature flag — disabled means every publish returns None
EVENT_BUS_ENABLED = os.environ.get("EVENT_BUS_ENABLED", "true").lower() in (
    "true",
    "1",
    "yes",
)

STREAM_PREFIX = "vaultboard:events:"

VALID_STREAMS = {"audit", "entries", "system"}

# Max stream length per stream (circular buffer)
MAXLEN = int(os.environ.get("EVENT_BUS_MAXLEN", "10000"))

# Redis connection singleton
_redis_client = None


def _get_redis():
    """Get or create Redis connection. Returns None on failure."""
    global _redis_client
    if _redis_client is not None:
        try:
            _redis_client.ping()
            return _redis_client
        except Exception:
            _redis_client = None

    try:
        import redis

        redis_url = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
        _redis_client = redis.Redis.from_url(redis_url, decode_responses=True)
        _redis_client.ping()
        return _redis_client
    except Exception as e:
        logger.warning("Event bus: Redis connection failed: %s", e)
        _redis_client = None
        return None


def set_redis_client(client):
    """Override Redis client for testing."""
    global _redis_client
    _redis_client = client


def reset_client():
    """Reset the Redis client singleton."""
    global _redis_client
    _redis_client = None


def _stream_key(stream: str) -> str:
    return f"{STREAM_PREFIX}{stream}"


def _make_envelope(
    event_type: str,
    payload: dict,
    *,
    source: str = "unknown",
    actor: str = "system",
    correlation_id: str | None = None,
) -> dict[str, str]:
    """Create a standardized event envelope for Redis Streams."""
    return {
        "timestamp": datetime.now(UTC).isoformat(),
        "type": event_type,
        "source": source,
        "actor": actor,
        "payload": json.dumps(payload, default=str),
        "correlation_id": correlation_id or "",
    }


def _parse_fields(msg_id: str, fields: dict) -> dict:
    return {
        "id": msg_id,
        "timestamp": fields.get("timestamp", ""),
        "type": fields.get("type", ""),
        "source": fields.get("source", ""),
        "actor": fields.get("actor", ""),
        "payload": json.loads(fields.get("payload", "{}")),
        "correlation_id": fields.get("correlation_id", ""),
    }


def publish(
    stream: str,
    event_type: str,
    payload: dict,
    *,
    source: str = "unknown",
    actor: str = "system",
    correlation_id: str | None = None,
) -> str | None:
    """Publish an event to a Redis Stream.

    Returns the stream message ID on success, None on failure or when the bus
    is disabled. Never raises.
    """
    if not EVENT_BUS_ENABLED:
        return None

    if stream not in VALID_STREAMS:
        logger.warning("Event bus: unknown stream '%s', not publishing", stream)
        return None

    try:
        r = _get_redis()
        if r is None:
            return None

        envelope = _make_envelope(
            event_type,
            payload,
            source=source,
            actor=actor,
            correlation_id=correlation_id,
        )
        msg_id: str | None = r.xadd(_stream_key(stream), envelope, maxlen=MAXLEN, approximate=True)
        return msg_id
    except Exception as e:
        logger.warning("Event bus publish failed: %s", e)
        return None


def _batch(messages) -> list:
    """Entries of the single stream a consumer-group read returns."""
    if not messages:
        return []
    return messages[0][1] or []


def _dispatch(r, key: str, group: str, msg_id, fields, handler: Callable[[dict], None]) -> bool:
    """Run ``handler`` on one entry and acknowledge it. False leaves it pending."""
    if not fields:
        # Trimmed from the stream while pending; nothing left to deliver.
        r.xack(key, group, msg_id)
        return True
    try:
        handler(_parse_fields(msg_id, fields))
    except Exception as e:
        logger.error("Event bus: handler error for %s: %s", msg_id, e)
        return False
    r.xack(key, group, msg_id)
    return True


def subscribe(
    stream: str,
    group: str,
    consumer: str,
    *,
    handler: Callable[[dict], None],
    batch_size: int = 10,
    block_ms: int = 5000,
    retry_ms: int = 30000,
    max_iterations: int | None = None,
) -> None:
    """Subscribe to a Redis Stream as a consumer group member.

    Creates the consumer group if it doesn't exist. Events are acknowledged
    only after ``handler`` returns; a raising handler leaves the event in this
    consumer's pending list. The pending list is replayed on start and again
    ``retry_ms`` after a failure, so failed events are retried until handled.
    """
    if not EVENT_BUS_ENABLED:
        return

    r = _get_redis()
    if r is None:
        logger.warning("Event bus: cannot subscribe, Redis unavailable")
        return

    key = _stream_key(stream)

    try:
        r.xgroup_create(key, group, id="0", mkstream=True)
    except Exception as e:
        if "BUSYGROUP" not in str(e):
            logger.warning("Event bus: failed to create group %s: %s", group, e)

    # Position in the pending list while replaying it; None reads new events.
    replay_from: str | None = "0"
    replay_at = 0.0
    replay_failed = False

    iteration = 0
    while max_iterations is None or iteration < max_iterations:
        iteration += 1
        try:
            replaying = replay_from is not None and time.monotonic() >= replay_at
            if replaying:
                entries = _batch(
                    r.xreadgroup(group, consumer, {key: replay_from}, count=batch_size)
                )
                if not entries:
                    if replay_failed:
                        replay_from, replay_failed = "0", False
                        replay_at = time.monotonic() + retry_ms / 1000
                    else:
                        replay_from = None
                    continue
                replay_from = entries[-1][0]
            else:
                entries = _batch(
                    r.xreadgroup(group, consumer, {key: ">"}, count=batch_size, block=block_ms)
                )

            for msg_id, fields in entries:
                if _dispatch(r, key, group, msg_id, fields, handler):
                    continue
                if replaying:
                    replay_failed = True
                elif replay_from is None:
                    replay_from = "0"
                    replay_at = time.monotonic() + retry_ms / 1000
        except Exception as e:
            logger.warning("Event bus: subscribe loop error: %s", e)
            if max_iterations is not None:
                break
            time.sleep(1)
