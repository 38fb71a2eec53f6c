"""Access log data models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class AccessAction(str, Enum):
    VIEW = "view"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    EXPORT = "export"


@dataclass(frozen=True)
class Origin:
    """Where a request came from, as reported by the HTTP layer."""

    ip_address: str | None = None
    user_agent: str | None = None


class AccessLogEntry(BaseModel):
    """One immutable access event. ``principal_id`` is None for system actions."""

    id: str
    entry_id: str
    principal_id: str | None = None
    action: AccessAction
    accessed_at: datetime
    ip_address: str | None = None
    user_agent: str | None = None
