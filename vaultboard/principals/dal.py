"""
Principal DAL — role lookups and one-time role assignment on user_roles.

Session handling and credential checks live upstream; this module only maps
an already-authenticated principal id to its profile and role.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from psycopg2 import errors as pg_errors
from psycopg2.extras import RealDictCursor

from vaultboard.db.connection import get_connection
from vaultboard.errors import RoleAlreadyAssigned
from vaultboard.principals.models import Principal, Role

logger = logging.getLogger(__name__)


def _row_to_principal(row: dict) -> Principal:
    return Principal(
        id=str(row["user_id"]),
        email=row.get("email") or "",
        display_name=row.get("display_name") or "",
        role=row["role"],
    )


def get_principal(principal_id: str) -> Principal | None:
    """Look up a principal and its role. None when no role row exists."""
    with get_connection() as conn:
        cur = conn.cursor(cursor_factory=RealDictCursor)
        cur.execute(
            "SELECT user_id, email, display_name, role FROM user_roles WHERE user_id = %s",
            (principal_id,),
        )
        row = cur.fetchone()
    return _row_to_principal(row) if row else None


def get_role(principal_id: str) -> str | None:
    principal = get_principal(principal_id)
    return principal.role if principal else None


def emails_for(principal_ids: Iterable[str]) -> dict[str, str]:
    """Map principal ids to emails. Unknown ids are left out."""
    ids = sorted({str(p) for p in principal_ids if p})
    if not ids:
        return {}
    with get_connection() as conn:
        cur = conn.cursor(cursor_factory=RealDictCursor)
        cur.execute(
            "SELECT user_id, email FROM user_roles WHERE user_id::text = ANY(%s)",
            (ids,),
        )
        rows = cur.fetchall()
    return {str(r["user_id"]): r["email"] for r in rows if r.get("email")}


def assign_role(principal_id: str, email: str, role: Role, display_name: str = "") -> Principal:
    """Record the role chosen at signup. Raises RoleAlreadyAssigned on a second call."""
    role = Role(role)
    with get_connection() as conn:
        cur = conn.cursor(cursor_factory=RealDictCursor)
        try:
            cur.execute(
                """
                INSERT INTO user_roles (user_id, email, display_name, role)
                VALUES (%s, %s, %s, %s)
                RETURNING user_id, email, display_name, role
                """,
                (principal_id, email, display_name, role.value),
            )
        except pg_errors.UniqueViolation as e:
            raise RoleAlreadyAssigned(f"Principal {principal_id} already has a role") from e
        row = cur.fetchone()
    logger.info("Assigned role %s to principal %s", role.value, principal_id)
    return _row_to_principal(row)
