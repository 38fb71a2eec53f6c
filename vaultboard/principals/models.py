"""Principal data models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class Role(str, Enum):
    """Principal role. Not ordered: each role has its own capability set."""

    ADMIN = "admin"
    MANAGER = "manager"
    MEMBER = "member"
    VIEWER = "viewer"


class Principal(BaseModel):
    """An authenticated actor.

    ``role`` is kept as a plain string so that rows carrying a role the policy
    does not know about can still be represented; the policy denies them.
    """

    id: str
    email: str = ""
    display_name: str = ""
    role: str = Role.VIEWER.value
