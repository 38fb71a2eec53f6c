"""
Entry models and row converters.

``Entry`` is the in-application shape. ``entry_to_dict`` converts a database
row (RealDictCursor) into the API response shape, mirroring the column names.

Usage:
    from vaultboard.entries.models import Entry, entry_from_row, entry_to_dict

    entry = entry_from_row(cur.fetchone())
    response = entry_to_dict(entry)
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class Category(str, Enum):
    CREDENTIAL = "credential"
    SOP = "sop"
    LINK = "link"
    DOCUMENT = "document"


class Classification(str, Enum):
    """Visibility tier, ordered by increasing sensitivity."""

    PUBLIC = "public"
    INTERNAL = "internal"
    CONFIDENTIAL = "confidential"
    RESTRICTED = "restricted"


def _dedupe_tags(tags: list[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.add(tag)
            result.append(tag)
    return result


class Entry(BaseModel):
    """A knowledge entry. ``content`` is ciphertext at rest when ``is_sensitive``."""

    id: str
    owner_id: str
    title: str
    content: str = ""
    category: Category
    classification: Classification = Classification.INTERNAL
    tags: list[str] = Field(default_factory=list)
    is_sensitive: bool = False
    expiration_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_accessed_at: datetime | None = None
    file_key: str | None = None
    file_name: str | None = None
    created_by: str | None = None

    @field_validator("tags")
    @classmethod
    def _unique_tags(cls, v: list[str]) -> list[str]:
        return _dedupe_tags(v)


class EntryCreate(BaseModel):
    """Fields accepted when creating an entry."""

    title: str = Field(min_length=1)
    content: str = Field(min_length=1)
    category: Category
    classification: Classification = Classification.INTERNAL
    tags: list[str] = Field(default_factory=list)
    is_sensitive: bool = False
    expiration_date: datetime | None = None
    file_key: str | None = None
    file_name: str | None = None

    @field_validator("tags")
    @classmethod
    def _unique_tags(cls, v: list[str]) -> list[str]:
        return _dedupe_tags(v)


class EntryUpdate(BaseModel):
    """Partial update. ``None`` means "leave unchanged"."""

    title: str | None = Field(default=None, min_length=1)
    content: str | None = None
    category: Category | None = None
    classification: Classification | None = None
    tags: list[str] | None = None
    is_sensitive: bool | None = None
    expiration_date: datetime | None = None
    file_key: str | None = None
    file_name: str | None = None

    @field_validator("tags")
    @classmethod
    def _unique_tags(cls, v: list[str] | None) -> list[str] | None:
        return _dedupe_tags(v) if v is not None else None

    def changes(self) -> dict:
        """Explicitly set fields. Only the optional columns may be cleared with null."""
        fields = self.model_dump(exclude_unset=True)
        return {
            k: v for k, v in fields.items() if v is not None or k in _NULLABLE_UPDATE_FIELDS
        }


_NULLABLE_UPDATE_FIELDS = {"expiration_date", "file_key", "file_name"}


class EntryFilters(BaseModel):
    category: Category | None = None
    classification: Classification | None = None
    tags: list[str] = Field(default_factory=list)
    search: str | None = None


SORTABLE_FIELDS = ("created_at", "updated_at", "last_accessed_at", "title")


class EntrySort(BaseModel):
    field: str = "created_at"
    descending: bool = True

    @field_validator("field")
    @classmethod
    def _known_field(cls, v: str) -> str:
        if v not in SORTABLE_FIELDS:
            raise ValueError(f"sort field must be one of {SORTABLE_FIELDS}, got {v!r}")
        return v


class Page(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def entry_from_row(row: dict) -> Entry:
    """Convert a knowledge_entries row into an ``Entry``."""
    return Entry(
        id=str(row["id"]),
        owner_id=str(row["user_id"]),
        title=row.get("title") or "",
        content=row.get("content") or "",
        category=row["category"],
        classification=row.get("classification") or Classification.INTERNAL,
        tags=row.get("tags") or [],
        is_sensitive=bool(row.get("is_sensitive")),
        expiration_date=row.get("expiration_date"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
        last_accessed_at=row.get("last_accessed_at"),
        file_key=row.get("file_key"),
        file_name=row.get("file_name"),
        created_by=str(row["created_by"]) if row.get("created_by") else None,
    )


def entry_to_dict(entry: Entry) -> dict:
    """Convert an ``Entry`` into the API response shape."""
    return {
        "id": entry.id,
        "user_id": entry.owner_id,
        "title": entry.title,
        "content": entry.content,
        "category": entry.category.value,
        "classification": entry.classification.value,
        "tags": list(entry.tags),
        "is_sensitive": entry.is_sensitive,
        "expiration_date": entry.expiration_date.isoformat() if entry.expiration_date else None,
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
        "updated_at": entry.updated_at.isoformat() if entry.updated_at else None,
        "last_accessed_at": entry.last_accessed_at.isoformat()
        if entry.last_accessed_at
        else None,
        "file_key": entry.file_key,
        "file_name": entry.file_name,
        "created_by": entry.created_by,
    }
