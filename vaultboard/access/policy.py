"""
Role-based access policy for knowledge entries.

Two static tables drive every decision:

  ROLE_CAPABILITIES      role -> what the role may do to entries it does not own
  CLASSIFICATION_ACCESS  role -> classifications the role may see at all

``check_access`` is deterministic and performs no I/O. Unknown roles and
unknown actions are denied.

Usage:
    from vaultboard.access.policy import check_access

    if not check_access(principal, entry, "edit"):
        raise AuthorizationDenied("edit", entry.id)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from vaultboard.entries.models import Classification, Entry
from vaultboard.principals.models import Principal, Role


class Action(str, Enum):
    VIEW = "view"
    EDIT = "edit"
    DELETE = "delete"


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"

    def __bool__(self) -> bool:
        return self is Decision.ALLOW


@dataclass(frozen=True)
class Capabilities:
    create: bool
    edit_any: bool
    delete_any: bool
    view_sensitive: bool


ROLE_CAPABILITIES: dict[Role, Capabilities] = {
    Role.ADMIN: Capabilities(create=True, edit_any=True, delete_any=True, view_sensitive=True),
    Role.MANAGER: Capabilities(create=True, edit_any=False, delete_any=False, view_sensitive=True),
    Role.MEMBER: Capabilities(create=True, edit_any=False, delete_any=False, view_sensitive=False),
    Role.VIEWER: Capabilities(create=False, edit_any=False, delete_any=False, view_sensitive=False),
}

CLASSIFICATION_ACCESS: dict[Role, frozenset[Classification]] = {
    Role.ADMIN: frozenset(Classification),
    Role.MANAGER: frozenset(
        {Classification.PUBLIC, Classification.INTERNAL, Classification.CONFIDENTIAL}
    ),
    Role.MEMBER: frozenset({Classification.PUBLIC, Classification.INTERNAL}),
    Role.VIEWER: frozenset({Classification.PUBLIC, Classification.INTERNAL}),
}

# Roles allowed to read an entry's access log
AUDIT_READERS = frozenset({Role.ADMIN, Role.MANAGER})


def _role(value: str | Role) -> Role | None:
    try:
        return Role(value)
    except ValueError:
        return None


def _action(value: str | Action) -> Action | None:
    try:
        return Action(value)
    except ValueError:
        return None


def capabilities_for(role: str | Role) -> Capabilities | None:
    """Capability row for a role, or None for an unknown role."""
    r = _role(role)
    return ROLE_CAPABILITIES.get(r) if r else None


def visible_classifications(role: str | Role) -> frozenset[Classification]:
    """Classifications a role may see at all. Empty for unknown roles."""
    r = _role(role)
    return CLASSIFICATION_ACCESS.get(r, frozenset()) if r else frozenset()


def check_access(principal: Principal, entry: Entry, action: str | Action) -> Decision:
    """Decide whether ``principal`` may perform ``action`` on ``entry``."""
    role = _role(principal.role)
    act = _action(action)
    if role is None or act is None:
        return Decision.DENY
    caps = ROLE_CAPABILITIES[role]

    if entry.owner_id == principal.id:
        # Owners view, edit and delete their own entries regardless of role.
        return Decision.ALLOW

    if entry.classification not in CLASSIFICATION_ACCESS[role]:
        return Decision.DENY

    if act is Action.VIEW:
        if entry.is_sensitive and not caps.view_sensitive:
            return Decision.DENY
        return Decision.ALLOW
    if act is Action.EDIT:
        return Decision.ALLOW if caps.edit_any else Decision.DENY
    if act is Action.DELETE:
        return Decision.ALLOW if caps.delete_any else Decision.DENY
    return Decision.DENY


def can_create(principal: Principal) -> bool:
    caps = capabilities_for(principal.role)
    return bool(caps and caps.create)


def can_view_access_logs(principal: Principal) -> bool:
    return _role(principal.role) in AUDIT_READERS


def permission_level(principal: Principal, entry: Entry) -> str:
    """Summarize access to one entry as ``none``, ``read`` or ``read_write``."""
    if not check_access(principal, entry, Action.VIEW):
        return "none"
    return "read_write" if check_access(principal, entry, Action.EDIT) else "read"


@dataclass(frozen=True)
class VisibilityFilter:
    """Pre-filter for list queries over entries the principal does not own."""

    owner_id: str
    classifications: frozenset[Classification]
    include_sensitive: bool


def visible_filter(principal: Principal) -> VisibilityFilter:
    """Build the list-query filter equivalent to ``check_access(..., "view")``.

    An entry passes when the principal owns it, or when its classification is
    visible to the role and it is either not sensitive or the role can view
    sensitive content.
    """
    caps = capabilities_for(principal.role)
    return VisibilityFilter(
        owner_id=principal.id,
        classifications=visible_classifications(principal.role),
        include_sensitive=bool(caps and caps.view_sensitive),
    )
