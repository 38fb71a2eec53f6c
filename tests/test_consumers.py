"""
Tests for event bus consumers.

Validates consumer handler logic without requiring Redis.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from unittest.mock import patch

import pytest

from vaultboard.audit.consumer import AccessLogConsumer
from vaultboard.events.consumers.base import BaseConsumer

# ─── Base Consumer ───────────────────────────────────────────────────


class ConcreteConsumer(BaseConsumer):
    """Concrete implementation for testing the base class."""

    stream = "test"
    group = "test-group"
    consumer_name = "test-worker"

    def __init__(self):
        super().__init__()
        self.events_handled = []

    def handle(self, event: dict) -> None:
        self.events_handled.append(event)


class TestBaseConsumer:
    def test_abstract_cannot_instantiate(self):
        with pytest.raises(TypeError):
            BaseConsumer()

    def test_concrete_can_instantiate(self):
        c = ConcreteConsumer()
        assert c.stream == "test"
        assert c.group == "test-group"

    @patch("vaultboard.events.consumers.base.subscribe")
    def test_run_calls_subscribe(self, mock_subscribe):
        c = ConcreteConsumer()
        c.run(max_iterations=1)
        mock_subscribe.assert_called_once_with(
            "test",
            "test-group",
            "test-worker",
            handler=c.handle,
            batch_size=10,
            block_ms=5000,
            retry_ms=30000,
            max_iterations=1,
        )

    @patch.dict("os.environ", {"CONSUMER_NAME": "worker-42"})
    def test_consumer_name_from_env(self):
        assert ConcreteConsumer().consumer_name == "worker-42"


# ─── Access Log Consumer ────────────────────────────────────────────


def _event(**payload):
    return {"id": "1-0", "type": "entry.view", "source": "audit", "payload": payload}


class TestAccessLogConsumer:
    def test_stream_config(self):
        c = AccessLogConsumer()
        assert c.stream == "audit"
        assert c.group == "audit-writers"

    @patch("vaultboard.audit.consumer.write_access_log")
    def test_persists_event(self, mock_write):
        mock_write.return_value = {"id": "abc", "accessed_at": "2025-01-01T00:00:00+00:00"}
        AccessLogConsumer().handle(
            _event(
                entry_id="e1",
                principal_id="u1",
                action="view",
                accessed_at="2025-01-01T00:00:00+00:00",
                ip_address="10.0.0.1",
                user_agent="curl",
            )
        )
        mock_write.assert_called_once_with(
            "e1",
            "u1",
            "view",
            ip_address="10.0.0.1",
            user_agent="curl",
            accessed_at=datetime(2025, 1, 1, tzinfo=UTC),
        )

    @patch("vaultboard.audit.consumer.write_access_log", return_value=None)
    def test_failed_write_raises_for_redelivery(self, _mock_write):
        with pytest.raises(RuntimeError):
            AccessLogConsumer().handle(_event(entry_id="e1", action="view"))

    @patch("vaultboard.audit.consumer.write_access_log")
    def test_malformed_event_dropped(self, mock_write):
        AccessLogConsumer().handle(_event(principal_id="u1"))
        mock_write.assert_not_called()

    @patch("vaultboard.audit.consumer.write_access_log")
    def test_skipped_write_is_acknowledged(self, mock_write):
        mock_write.return_value = {"id": None, "accessed_at": "x", "skipped": True}
        # Returns normally so the bus acks it.
        AccessLogConsumer().handle(_event(entry_id="gone", action="delete"))

    @patch("vaultboard.audit.consumer.write_access_log")
    def test_failed_write_persisted_on_replay(self, mock_write, group_redis):
        mock_write.side_effect = [None, {"id": "abc", "accessed_at": "2025-01-01T00:00:00+00:00"}]
        payload = json.dumps({"entry_id": "e1", "principal_id": "u1", "action": "view"})
        group_redis.new = [("1-0", {"type": "entry.view", "payload": payload})]

        consumer = AccessLogConsumer()
        consumer.retry_ms = 0
        consumer.run(max_iterations=4)

        assert mock_write.call_count == 2
        assert group_redis.acked == ["1-0"]
        assert group_redis.pending == {}
