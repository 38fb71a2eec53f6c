"""
AES-256-GCM protection for sensitive entry content.

The content key is derived (HKDF-SHA256) from the process secret supplied at
construction. Each protected value gets a unique 12-byte nonce; the stored
form is base64(nonce + ciphertext + tag).

Non-sensitive content passes through untouched. Stored values that do not look
like our ciphertext, or that fail to decrypt, are treated as legacy plaintext
and returned verbatim.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from vaultboard.config import MIN_SECRET_BYTES, Config

logger = logging.getLogger(__name__)

NONCE_BYTES = 12
TAG_BYTES = 16

# base64 of the smallest non-empty output (12 nonce + 16 tag + 1 byte)
MIN_ENCRYPTED_LENGTH = 40

_BASE64_RE = re.compile(r"^[A-Za-z0-9+/]+={0,2}$")

MASK_CHAR = "*"
MASK_WIDTH = 8
FULL_MASK = MASK_CHAR * 4

_HKDF_INFO = b"vaultboard-content-v1"


def derive_key(secret: str) -> bytes:
    """Derive the 32-byte AES key from the process secret."""
    raw = secret.encode("utf-8")
    if len(raw) < MIN_SECRET_BYTES:
        raise ValueError(f"Encryption secret must be at least {MIN_SECRET_BYTES} bytes, got {len(raw)}")
    return HKDF(algorithm=hashes.SHA256(), length=32, salt=None, info=_HKDF_INFO).derive(raw)


def encrypt(plaintext: str, key: bytes) -> bytes:
    """Encrypt plaintext with AES-256-GCM. Returns nonce (12 bytes) + ciphertext + tag (16 bytes)."""
    nonce = secrets.token_bytes(NONCE_BYTES)
    aesgcm = AESGCM(key)
    ciphertext = aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
    return nonce + ciphertext


def decrypt(data: bytes, key: bytes) -> str:
    """Decrypt nonce + ciphertext + tag back to plaintext."""
    if len(data) < NONCE_BYTES + TAG_BYTES:
        raise ValueError("Encrypted data too short")
    nonce = data[:NONCE_BYTES]
    ciphertext = data[NONCE_BYTES:]
    aesgcm = AESGCM(key)
    plaintext = aesgcm.decrypt(nonce, ciphertext, None)
    return plaintext.decode("utf-8")


def looks_encrypted(text: str) -> bool:
    """Heuristic: base64 alphabet and at least as long as our shortest ciphertext.

    Approximate by nature; ``reveal`` falls back to the stored text when a
    false positive fails to decrypt.
    """
    if not text:
        return False
    return len(text) >= MIN_ENCRYPTED_LENGTH and bool(_BASE64_RE.match(text))


def mask(content: str) -> str:
    """Irreversibly redact content for list views.

    Keeps the first and last 4 characters around a fixed-width run of mask
    characters. Content of 8 characters or fewer becomes ``****``.
    """
    if len(content) <= 8:
        return FULL_MASK
    return f"{content[:4]}{MASK_CHAR * MASK_WIDTH}{content[-4:]}"


class ContentProtection:
    """Conditional at-rest encryption keyed by an explicitly supplied secret."""

    def __init__(self, secret: str):
        self._key = derive_key(secret)

    @classmethod
    def from_config(cls, cfg: Config) -> ContentProtection:
        return cls(cfg.encryption_secret)

    def protect(self, plaintext: str, is_sensitive: bool) -> str:
        """Return the at-rest form of ``plaintext``."""
        if not is_sensitive or not plaintext:
            return plaintext
        return base64.b64encode(encrypt(plaintext, self._key)).decode("ascii")

    def reveal(self, stored: str, is_sensitive: bool) -> str:
        """Return the plaintext form of ``stored``. Never raises on bad ciphertext."""
        if not is_sensitive or not looks_encrypted(stored):
            return stored
        try:
            return decrypt(base64.b64decode(stored, validate=True), self._key)
        except (InvalidTag, ValueError, binascii.Error) as e:
            # Legacy plaintext, rotated key or corruption: show what is stored.
            logger.warning("Content decryption failed, returning stored text: %s", type(e).__name__)
            return stored

    def mask(self, content: str) -> str:
        return mask(content)

    def preview(self, stored: str, is_sensitive: bool) -> str:
        """List-view form: revealed then masked when sensitive, untouched otherwise."""
        if not is_sensitive:
            return stored
        return mask(self.reveal(stored, is_sensitive))
