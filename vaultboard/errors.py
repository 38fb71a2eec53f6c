"""Typed outcomes surfaced to callers of the entry service and HTTP layer."""

from __future__ import annotations


class VaultBoardError(Exception):
    """Base class for VaultBoard errors."""


class AuthorizationDenied(VaultBoardError):
    """The access policy denied the requested action.

    The message is safe to show to the caller: it never includes entry content.
    """

    def __init__(self, action: str, entry_id: str | None = None):
        self.action = action
        self.entry_id = entry_id
        target = f" entry {entry_id}" if entry_id else ""
        super().__init__(f"Forbidden: not allowed to {action}{target}")


class EntryNotFound(VaultBoardError):
    """The referenced entry does not exist."""

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Entry not found: {entry_id}")


class SecretMissing(VaultBoardError):
    """No usable encryption secret was provisioned for this environment."""


class InvalidUpload(VaultBoardError):
    """A blob was rejected at the upload boundary (size or content type)."""


class RoleAlreadyAssigned(VaultBoardError):
    """A principal already has a role; roles are assigned once at signup."""
