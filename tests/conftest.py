"""
Shared fixtures for the VaultBoard test suite.

Provides principals for every role, an in-memory entry store with the same
interface as ``EntryStore``, and an ``EntryService`` wired to both with a
mocked audit trail.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest

from vaultboard.access.policy import VisibilityFilter
from vaultboard.audit import logger as audit_logger
from vaultboard.entries.models import Entry, EntryFilters, EntrySort, Page
from vaultboard.entries.service import EntryService
from vaultboard.events import bus
from vaultboard.principals.models import Principal
from vaultboard.storage.blobs import BlobStore
from vaultboard.vault.crypto import ContentProtection

TEST_SECRET = "test-suite-secret-at-least-32-bytes-long"


class InMemoryEntryStore:
    """Dict-backed stand-in for ``EntryStore``."""

    def __init__(self):
        self.rows: dict[str, Entry] = {}
        self.touched: list[str] = []

    def get(self, entry_id: str) -> Entry | None:
        return self.rows.get(entry_id)

    def get_by_file_key(self, file_key: str) -> Entry | None:
        return next((e for e in self.rows.values() if e.file_key == file_key), None)

    def put(self, entry: Entry) -> Entry:
        now = datetime.now(UTC)
        stored = entry.model_copy(
            update={"created_at": entry.created_at or now, "updated_at": now}
        )
        self.rows[stored.id] = stored
        return stored

    def delete(self, entry_id: str) -> bool:
        return self.rows.pop(entry_id, None) is not None

    @staticmethod
    def _visible(entry: Entry, visibility: VisibilityFilter | None) -> bool:
        if visibility is None or entry.owner_id == visibility.owner_id:
            return True
        if entry.classification not in visibility.classifications:
            return False
        return visibility.include_sensitive or not entry.is_sensitive

    def list(self, filters: EntryFilters, sort: EntrySort, page: Page, visibility=None):
        rows = [e for e in self.rows.values() if self._visible(e, visibility)]
        if filters.category:
            rows = [e for e in rows if e.category == filters.category]
        if filters.classification:
            rows = [e for e in rows if e.classification == filters.classification]
        if filters.tags:
            rows = [e for e in rows if set(filters.tags) <= set(e.tags)]
        if filters.search:
            needle = filters.search.lower()
            rows = [
                e
                for e in rows
                if needle in e.title.lower()
                or (not e.is_sensitive and needle in e.content.lower())
            ]
        rows.sort(
            key=lambda e: getattr(e, sort.field) or datetime.min.replace(tzinfo=UTC),
            reverse=sort.descending,
        )
        return rows[page.offset : page.offset + page.limit], len(rows)

    def list_expiring(self, before: datetime, visibility=None):
        rows = [
            e
            for e in self.rows.values()
            if e.expiration_date is not None
            and e.expiration_date <= before
            and self._visible(e, visibility)
        ]
        return sorted(rows, key=lambda e: e.expiration_date)

    def touch_accessed(self, entry_id: str, at: datetime | None = None) -> None:
        self.touched.append(entry_id)
        if entry_id in self.rows:
            self.rows[entry_id] = self.rows[entry_id].model_copy(
                update={"last_accessed_at": at or datetime.now(UTC)}
            )


def make_principal(role: str, email: str | None = None) -> Principal:
    pid = str(uuid.uuid4())
    return Principal(id=pid, email=email or f"{role}@example.com", display_name=role, role=role)


@pytest.fixture
def admin():
    return make_principal("admin")


@pytest.fixture
def manager():
    return make_principal("manager")


@pytest.fixture
def member():
    return make_principal("member")


@pytest.fixture
def other_member():
    return make_principal("member", "other@example.com")


@pytest.fixture
def viewer():
    return make_principal("viewer")


@pytest.fixture
def protection():
    return ContentProtection(TEST_SECRET)


@pytest.fixture
def store():
    return InMemoryEntryStore()


@pytest.fixture
def audit():
    """Audit trail double; the pure helpers keep their real behaviour."""
    trail = MagicMock()
    trail.compute_stats.side_effect = audit_logger.compute_stats
    trail.mask_origin.side_effect = audit_logger.mask_origin
    trail.access_logs.return_value = []
    return trail


@pytest.fixture
def blobs(tmp_path):
    return BlobStore(tmp_path / "blobs", public_url="http://test")


@pytest.fixture
def directory(admin, manager, member, other_member, viewer):
    """Principal directory double that knows every role fixture."""
    emails = {p.id: p.email for p in (admin, manager, member, other_member, viewer)}
    lookup = MagicMock()
    lookup.emails_for.side_effect = lambda ids: {i: emails[i] for i in ids if i in emails}
    return lookup


@pytest.fixture
def service(store, protection, blobs, audit, directory):
    return EntryService(store, protection, blobs=blobs, audit=audit, directory=directory)


@pytest.fixture(autouse=True)
def no_event_bus():
    """No test talks to a real Redis."""
    redis = MagicMock()
    redis.xadd.return_value = None
    bus.set_redis_client(redis)
    yield redis
    bus.reset_client()


def _stream_id(msg_id: str) -> tuple[int, ...]:
    return tuple(int(part) for part in msg_id.split("-"))


class FakeGroupRedis:
    """One consumer group on one stream: new entries, a pending list and acks."""

    def __init__(self, entries=()):
        self.new = list(entries)
        self.pending: dict[str, dict] = {}
        self.acked: list[str] = []
        self.reads: list[str] = []

    def ping(self):
        return True

    def xgroup_create(self, *args, **kwargs):
        pass

    def xreadgroup(self, group, consumer, streams, count=None, block=None):
        ((key, start),) = streams.items()
        self.reads.append(start)
        if start == ">":
            batch, self.new = self.new[:count], self.new[count:]
            self.pending.update(batch)
        else:
            batch = [
                (msg_id, fields)
                for msg_id, fields in self.pending.items()
                if _stream_id(msg_id) > _stream_id(start)
            ][:count]
        return [(key, batch)] if batch else []

    def xack(self, key, group, msg_id):
        self.pending.pop(msg_id, None)
        self.acked.append(msg_id)


@pytest.fixture
def group_redis(no_event_bus):
    """Consumer-group Redis double installed as the bus client."""
    fake = FakeGroupRedis()
    bus.set_redis_client(fake)
    return fake
