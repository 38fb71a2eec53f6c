"""
Entry Data Access Layer — PostgreSQL persistence for knowledge_entries.

The store is content-agnostic: it persists whatever ``content`` it is given
(ciphertext for sensitive entries) and never makes access decisions. The
optional ``VisibilityFilter`` only narrows list queries so pagination counts
match what the caller may see.

Usage:
    from vaultboard.entries.dal import EntryStore

    store = EntryStore()
    entry = store.get(entry_id)
    rows, total = store.list(EntryFilters(category="credential"), EntrySort(), Page())
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from psycopg2.extras import RealDictCursor

from vaultboard.access.policy import VisibilityFilter
from vaultboard.db.connection import get_connection
from vaultboard.entries.models import (
    SORTABLE_FIELDS,
    Entry,
    EntryFilters,
    EntrySort,
    Page,
    entry_from_row,
)

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, user_id, title, content, category, classification, tags, is_sensitive, "
    "expiration_date, file_key, file_name, created_by, created_at, updated_at, last_accessed_at"
)


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
        return True
    except ValueError:
        return False


def _visibility_clause(visibility: VisibilityFilter | None) -> tuple[str, list]:
    """SQL mirror of the view rule: owned, or visible classification and allowed sensitivity."""
    if visibility is None:
        return "", []
    classifications = sorted(c.value for c in visibility.classifications)
    clause = "(user_id = %s OR (classification = ANY(%s)"
    params: list = [visibility.owner_id, classifications]
    if not visibility.include_sensitive:
        clause += " AND is_sensitive = FALSE"
    clause += "))"
    return clause, params


def _filter_clauses(
    filters: EntryFilters, visibility: VisibilityFilter | None
) -> tuple[list[str], list]:
    where = ["TRUE"]
    params: list = []

    clause, clause_params = _visibility_clause(visibility)
    if clause:
        where.append(clause)
        params.extend(clause_params)
    if filters.category:
        where.append("category = %s")
        params.append(filters.category.value)
    if filters.classification:
        where.append("classification = %s")
        params.append(filters.classification.value)
    if filters.tags:
        where.append("tags @> %s")
        params.append(list(filters.tags))
    if filters.search:
        # Ciphertext is never searched.
        pattern = f"%{filters.search}%"
        where.append("(title ILIKE %s OR (is_sensitive = FALSE AND content ILIKE %s))")
        params.extend([pattern, pattern])
    return where, params


class EntryStore:
    """psycopg2-backed entry persistence."""

    def get(self, entry_id: str) -> Entry | None:
        if not _is_uuid(entry_id):
            return None
        with get_connection() as conn:
            cur = conn.cursor(cursor_factory=RealDictCursor)
            cur.execute(f"SELECT {_COLUMNS} FROM knowledge_entries WHERE id = %s", (entry_id,))
            row = cur.fetchone()
        return entry_from_row(row) if row else None

    def get_by_file_key(self, file_key: str) -> Entry | None:
        """The entry whose attachment is stored under ``file_key``."""
        with get_connection() as conn:
            cur = conn.cursor(cursor_factory=RealDictCursor)
            cur.execute(
                f"SELECT {_COLUMNS} FROM knowledge_entries WHERE file_key = %s LIMIT 1",
                (file_key,),
            )
            row = cur.fetchone()
        return entry_from_row(row) if row else None

    def put(self, entry: Entry) -> Entry:
        """Insert or fully replace an entry. Returns the stored row."""
        now = datetime.now(UTC)
        with get_connection() as conn:
            cur = conn.cursor(cursor_factory=RealDictCursor)
            cur.execute(
                f"""
                INSERT INTO knowledge_entries
                    (id, user_id, title, content, category, classification, tags,
                     is_sensitive, expiration_date, file_key, file_name, created_by,
                     created_at, updated_at, last_accessed_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (id) DO UPDATE SET
                    title = EXCLUDED.title,
                    content = EXCLUDED.content,
                    category = EXCLUDED.category,
                    classification = EXCLUDED.classification,
                    tags = EXCLUDED.tags,
                    is_sensitive = EXCLUDED.is_sensitive,
                    expiration_date = EXCLUDED.expiration_date,
                    file_key = EXCLUDED.file_key,
                    file_name = EXCLUDED.file_name,
                    updated_at = EXCLUDED.updated_at
                RETURNING {_COLUMNS}
                """,
                (
                    entry.id,
                    entry.owner_id,
                    entry.title,
                    entry.content,
                    entry.category.value,
                    entry.classification.value,
                    list(entry.tags),
                    entry.is_sensitive,
                    entry.expiration_date,
                    entry.file_key,
                    entry.file_name,
                    entry.created_by,
                    entry.created_at or now,
                    now,
                    entry.last_accessed_at,
                ),
            )
            row = cur.fetchone()
        return entry_from_row(row)

    def delete(self, entry_id: str) -> bool:
        """Delete an entry (access logs cascade). Returns True if a row was deleted."""
        if not _is_uuid(entry_id):
            return False
        with get_connection() as conn:
            cur = conn.cursor()
            cur.execute("DELETE FROM knowledge_entries WHERE id = %s", (entry_id,))
            return cur.rowcount > 0

    def list(
        self,
        filters: EntryFilters,
        sort: EntrySort,
        page: Page,
        visibility: VisibilityFilter | None = None,
    ) -> tuple[list[Entry], int]:
        """Filtered, sorted page of entries plus the total matching count."""
        where, params = _filter_clauses(filters, visibility)

        if sort.field not in SORTABLE_FIELDS:
            raise ValueError(f"Unsortable field: {sort.field}")
        direction = "DESC" if sort.descending else "ASC"

        with get_connection() as conn:
            cur = conn.cursor(cursor_factory=RealDictCursor)
            cur.execute(
                f"""
                SELECT {_COLUMNS}, COUNT(*) OVER() AS total_count
                FROM knowledge_entries
                WHERE {" AND ".join(where)}
                ORDER BY {sort.field} {direction} NULLS LAST, id
                LIMIT %s OFFSET %s
                """,
                (*params, page.limit, page.offset),
            )
            rows = cur.fetchall()

        if rows:
            total = int(rows[0]["total_count"])
        elif page.page > 1:
            total = self.count(filters, visibility)
        else:
            total = 0
        return [entry_from_row(r) for r in rows], total

    def count(self, filters: EntryFilters, visibility: VisibilityFilter | None = None) -> int:
        where, params = _filter_clauses(filters, visibility)
        with get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                f"SELECT COUNT(*) FROM knowledge_entries WHERE {' AND '.join(where)}",
                params,
            )
            row = cur.fetchone()
        return row[0] if row else 0

    def list_expiring(
        self, before: datetime, visibility: VisibilityFilter | None = None
    ) -> list[Entry]:
        """Entries with an expiration date on or before ``before``, soonest first."""
        where = ["expiration_date IS NOT NULL", "expiration_date <= %s"]
        params: list = [before]
        clause, clause_params = _visibility_clause(visibility)
        if clause:
            where.append(clause)
            params.extend(clause_params)
        with get_connection() as conn:
            cur = conn.cursor(cursor_factory=RealDictCursor)
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM knowledge_entries
                WHERE {" AND ".join(where)}
                ORDER BY expiration_date ASC
                """,
                params,
            )
            rows = cur.fetchall()
        return [entry_from_row(r) for r in rows]

    def touch_accessed(self, entry_id: str, at: datetime | None = None) -> None:
        with get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "UPDATE knowledge_entries SET last_accessed_at = %s WHERE id = %s",
                (at or datetime.now(UTC), entry_id),
            )
