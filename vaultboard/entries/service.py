"""
Entry service — the request path for knowledge entries.

Each operation resolves the entry, asks the access policy, applies content
protection and hands an access event to the audit trail:

    principal -> check_access -> protect / reveal / mask -> audit.record

Audit recording never fails the operation. Authorization failures raise
``AuthorizationDenied``, unknown ids raise ``EntryNotFound``.

Usage:
    from vaultboard.entries.service import EntryService

    service = EntryService.from_config(get_config())
    entry = service.create(principal, EntryCreate(title="VPN", content="...", category="credential"))
"""

from __future__ import annotations

import json
import logging
import math
import re
import uuid
from datetime import UTC, datetime

from vaultboard.access.policy import (
    Action,
    can_create,
    can_view_access_logs,
    check_access,
    visible_filter,
)
from vaultboard.audit import logger as audit_trail
from vaultboard.audit.models import AccessAction, Origin
from vaultboard.config import Config
from vaultboard.entries.dal import EntryStore
from vaultboard.entries.expiration import (
    INTERACTIVE_HORIZON_DAYS,
    SWEEP_HORIZON_DAYS,
    ExpirationStatus,
    bucket_entries,
    classify_expiration,
    days_until,
    horizon_cutoff,
)
from vaultboard.entries.models import (
    Entry,
    EntryCreate,
    EntryFilters,
    EntrySort,
    EntryUpdate,
    Page,
    entry_to_dict,
)
from vaultboard.errors import AuthorizationDenied, EntryNotFound
from vaultboard.events.bus import publish
from vaultboard.principals import dal as principal_directory
from vaultboard.principals.models import Principal
from vaultboard.storage.blobs import BlobStore
from vaultboard.vault.crypto import ContentProtection

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("json", "txt")

_EXPORT_NAME_RE = re.compile(r"[^a-zA-Z0-9]")


def export_filename(entry: Entry, fmt: str) -> str:
    """``<title with non-alphanumerics as _>_<first 8 chars of id>.<fmt>``"""
    return f"{_EXPORT_NAME_RE.sub('_', entry.title)}_{entry.id[:8]}.{fmt}"


class EntryService:
    """Entry operations gated by the access policy."""

    def __init__(
        self,
        store: EntryStore,
        protection: ContentProtection,
        blobs: BlobStore | None = None,
        audit=audit_trail,
        directory=principal_directory,
    ):
        self.store = store
        self.protection = protection
        self.blobs = blobs
        self.audit = audit
        self.directory = directory

    @classmethod
    def from_config(cls, cfg: Config) -> EntryService:
        return cls(
            EntryStore(),
            ContentProtection.from_config(cfg),
            blobs=BlobStore.from_config(cfg),
        )

    # ── helpers ──────────────────────────────────────────────────────

    def _load(self, entry_id: str) -> Entry:
        entry = self.store.get(entry_id)
        if entry is None:
            raise EntryNotFound(entry_id)
        return entry

    def _authorize(self, principal: Principal, entry: Entry, action: Action) -> None:
        if not check_access(principal, entry, action):
            logger.info(
                "Denied %s on entry %s for principal %s (%s)",
                action.value,
                entry.id,
                principal.id,
                principal.role,
            )
            raise AuthorizationDenied(action.value, entry.id)

    def _record(
        self,
        entry_id: str,
        principal: Principal | None,
        action: AccessAction,
        origin: Origin | None,
    ) -> None:
        self.audit.record(entry_id, principal.id if principal else None, action, origin)

    def _revealed(self, entry: Entry) -> Entry:
        return entry.model_copy(
            update={"content": self.protection.reveal(entry.content, entry.is_sensitive)}
        )

    def _masked(self, entry: Entry) -> Entry:
        if not entry.is_sensitive:
            return entry
        return entry.model_copy(
            update={"content": self.protection.preview(entry.content, entry.is_sensitive)}
        )

    # ── operations ───────────────────────────────────────────────────

    def create(self, principal: Principal, payload: EntryCreate, origin: Origin | None = None) -> Entry:
        """Create an entry owned by ``principal``. Returns it with plaintext content."""
        if not can_create(principal):
            raise AuthorizationDenied("create")

        now = datetime.now(UTC)
        entry = Entry(
            id=str(uuid.uuid4()),
            owner_id=principal.id,
            title=payload.title,
            content=self.protection.protect(payload.content, payload.is_sensitive),
            category=payload.category,
            classification=payload.classification,
            tags=payload.tags,
            is_sensitive=payload.is_sensitive,
            expiration_date=payload.expiration_date,
            file_key=payload.file_key,
            file_name=payload.file_name,
            created_by=principal.id,
            created_at=now,
            updated_at=now,
        )
        stored = self.store.put(entry)
        self._record(stored.id, principal, AccessAction.CREATE, origin)
        publish(
            "entries",
            "entry.created",
            {"entry_id": stored.id, "category": stored.category.value},
            source="entries",
            actor=principal.id,
        )
        logger.info("Entry %s created by %s", stored.id, principal.id)
        return self._revealed(stored)

    def get(self, principal: Principal, entry_id: str, origin: Origin | None = None) -> Entry:
        """Fetch one entry with its content revealed."""
        entry = self._load(entry_id)
        self._authorize(principal, entry, Action.VIEW)

        now = datetime.now(UTC)
        self.store.touch_accessed(entry.id, now)
        self._record(entry.id, principal, AccessAction.VIEW, origin)
        return self._revealed(entry).model_copy(update={"last_accessed_at": now})

    def update(
        self,
        principal: Principal,
        entry_id: str,
        changes: EntryUpdate,
        origin: Origin | None = None,
    ) -> Entry:
        """Apply a partial update. Content is re-protected whenever it or the sensitivity changes."""
        entry = self._load(entry_id)
        self._authorize(principal, entry, Action.EDIT)

        fields = changes.changes()
        plaintext = fields.pop("content", None)
        if plaintext is None:
            plaintext = self.protection.reveal(entry.content, entry.is_sensitive)
        sensitive = fields.get("is_sensitive", entry.is_sensitive)

        updated = entry.model_copy(
            update={
                **fields,
                "content": self.protection.protect(plaintext, sensitive),
                "updated_at": datetime.now(UTC),
            }
        )
        stored = self.store.put(updated)
        self._record(stored.id, principal, AccessAction.UPDATE, origin)
        return self._revealed(stored)

    def delete(self, principal: Principal, entry_id: str, origin: Origin | None = None) -> None:
        entry = self._load(entry_id)
        self._authorize(principal, entry, Action.DELETE)

        # Recorded first; the cascade removes it together with the entry.
        self._record(entry.id, principal, AccessAction.DELETE, origin)
        self.store.delete(entry.id)

        if entry.file_key and self.blobs is not None:
            try:
                self.blobs.delete(entry.file_key)
            except OSError as e:
                logger.warning("Failed to remove blob %s for entry %s: %s", entry.file_key, entry.id, e)
        logger.info("Entry %s deleted by %s", entry.id, principal.id)

    def attachment(
        self, principal: Principal, file_key: str, origin: Origin | None = None
    ) -> tuple[bytes, str] | None:
        """Read the attachment stored under ``file_key``. Returns (data, filename).

        The entry that references the key must be visible to ``principal``;
        keys no entry references are not served. None when the blob is gone.
        """
        entry = self.store.get_by_file_key(file_key)
        if entry is None or self.blobs is None:
            raise EntryNotFound(file_key)
        self._authorize(principal, entry, Action.VIEW)

        data = self.blobs.retrieve(file_key)
        if data is None:
            logger.warning("Entry %s references missing blob %s", entry.id, file_key)
            return None
        self._record(entry.id, principal, AccessAction.VIEW, origin)
        return data, entry.file_name or file_key.rsplit("/", 1)[-1]

    def list(
        self,
        principal: Principal,
        filters: EntryFilters | None = None,
        sort: EntrySort | None = None,
        page: Page | None = None,
    ) -> dict:
        """A page of visible entries. Sensitive content is masked, never revealed."""
        filters = filters or EntryFilters()
        sort = sort or EntrySort()
        page = page or Page()

        entries, total = self.store.list(filters, sort, page, visible_filter(principal))
        # The store pre-filters; the policy stays the authority.
        visible = [e for e in entries if check_access(principal, e, Action.VIEW)]
        return {
            "data": [entry_to_dict(self._masked(e)) for e in visible],
            "count": total,
            "page": page.page,
            "limit": page.limit,
            "total_pages": math.ceil(total / page.limit) if total else 0,
        }

    def export(
        self,
        principal: Principal,
        entry_id: str,
        fmt: str = "json",
        origin: Origin | None = None,
    ) -> tuple[str, str, str]:
        """Render an entry for download. Returns (body, media type, filename)."""
        if fmt not in EXPORT_FORMATS:
            raise ValueError("Invalid format. Use json or txt")
        entry = self._load(entry_id)
        self._authorize(principal, entry, Action.VIEW)

        content = self.protection.reveal(entry.content, entry.is_sensitive)
        now = datetime.now(UTC)
        self._record(entry.id, principal, AccessAction.EXPORT, origin)

        if fmt == "json":
            body = json.dumps(
                {
                    "title": entry.title,
                    "content": content,
                    "category": entry.category.value,
                    "classification": entry.classification.value,
                    "tags": list(entry.tags),
                    "created_at": entry.created_at.isoformat() if entry.created_at else None,
                    "updated_at": entry.updated_at.isoformat() if entry.updated_at else None,
                    "exported_at": now.isoformat(),
                    "exported_by": principal.email or principal.id,
                },
                indent=2,
            )
            return body, "application/json", export_filename(entry, fmt)

        body = "\n".join(
            [
                "VAULTBOARD ENTRY EXPORT",
                "=======================",
                "",
                f"Title: {entry.title}",
                f"Category: {entry.category.value}",
                f"Classification: {entry.classification.value}",
                f"Tags: {', '.join(entry.tags) or 'None'}",
                "",
                f"Created: {entry.created_at.isoformat() if entry.created_at else '-'}",
                f"Updated: {entry.updated_at.isoformat() if entry.updated_at else '-'}",
                f"Exported: {now.isoformat()}",
                f"Exported By: {principal.email or principal.id}",
                "",
                "---",
                "",
                "CONTENT:",
                "",
                content,
                "",
                "---",
            ]
        )
        return body, "text/plain", export_filename(entry, fmt)

    def expiring(
        self,
        principal: Principal,
        horizon_days: int = INTERACTIVE_HORIZON_DAYS,
        now: datetime | None = None,
    ) -> dict:
        """Visible entries expiring within the horizon, revealed and bucketed by urgency."""
        now = now or datetime.now(UTC)
        candidates = self.store.list_expiring(horizon_cutoff(now, horizon_days), visible_filter(principal))
        visible = [e for e in candidates if check_access(principal, e, Action.VIEW)]

        def _row(entry: Entry) -> dict:
            status = classify_expiration(entry.expiration_date, now, horizon_days)
            return {
                **entry_to_dict(self._revealed(entry)),
                "days_until_expiration": days_until(entry.expiration_date, now),
                "status": status.value if status else None,
            }

        buckets = bucket_entries(visible, now, horizon_days)
        result: dict = {"all": [_row(e) for e in visible]}
        for status, entries in buckets.items():
            result[status] = [_row(e) for e in entries]
        result["counts"] = {"total": len(visible), **{s: len(v) for s, v in buckets.items()}}
        return result

    def access_report(self, principal: Principal, entry_id: str) -> dict:
        """Access log and statistics for one entry. Admins and managers only."""
        if not can_view_access_logs(principal):
            raise AuthorizationDenied("view access logs of", entry_id)
        entry = self._load(entry_id)

        logs = self.audit.access_logs(entry.id)
        emails = self.directory.emails_for(log.principal_id for log in logs)
        return {
            "entry_id": entry.id,
            "logs": [
                {
                    "id": log.id,
                    "principal_id": log.principal_id,
                    "user_email": (
                        emails.get(log.principal_id, "Unknown User") if log.principal_id else "System"
                    ),
                    "action": log.action.value,
                    "accessed_at": log.accessed_at.isoformat(),
                    "ip_address": self.audit.mask_origin(log.ip_address),
                    "user_agent": log.user_agent,
                }
                for log in logs
            ],
            "stats": self.audit.compute_stats(logs),
        }

    def sweep(self, now: datetime | None = None) -> dict:
        """Scheduled expiration check over all entries, 14 days ahead.

        Only metadata is read; content is never revealed here.
        """
        now = now or datetime.now(UTC)
        entries = self.store.list_expiring(horizon_cutoff(now, SWEEP_HORIZON_DAYS))
        buckets = bucket_entries(entries, now, SWEEP_HORIZON_DAYS)

        summary = {
            "expired": len(buckets[ExpirationStatus.EXPIRED.value]),
            "critical": len(buckets[ExpirationStatus.CRITICAL.value]),
            "warning": len(buckets[ExpirationStatus.WARNING.value]),
            "total": len(entries),
        }
        logger.info(
            "Expiration sweep: expired=%d critical=%d warning=%d total=%d",
            summary["expired"],
            summary["critical"],
            summary["warning"],
            summary["total"],
        )
        for entry in buckets[ExpirationStatus.EXPIRED.value]:
            logger.info("Expired entry: %s (%s)", entry.title, entry.category.value)
        for entry in buckets[ExpirationStatus.CRITICAL.value]:
            logger.info("Critical entry: %s (%dd)", entry.title, days_until(entry.expiration_date, now))

        publish("system", "expiration.sweep", summary, source="entries")
        return {"timestamp": now.isoformat(), "summary": summary}
