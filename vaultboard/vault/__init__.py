"""
VaultBoard content vault — conditional AES-256-GCM protection and masking.

Public API:
    ContentProtection(secret).protect(text, is_sensitive)  → at-rest form
    ContentProtection(secret).reveal(stored, is_sensitive) → plaintext (best-effort)
    mask(content)                                           → redacted preview
"""

from __future__ import annotations

from vaultboard.vault.crypto import ContentProtection, looks_encrypted, mask

__all__ = ["ContentProtection", "looks_encrypted", "mask"]
