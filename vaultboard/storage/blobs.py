"""
Local-filesystem blob store for entry attachments.

Keys are ``<owner id>/<epoch ms>_<random token>_<sanitized name>`` and map to
files under ``StorageConfig.blob_dir``. Size and content type are checked at the upload
boundary; nothing else in the system inspects blob bytes.

Usage:
    from vaultboard.storage.blobs import BlobStore

    blobs = BlobStore.from_config(get_config())
    key = blobs.store(data, "application/pdf", "runbook.pdf", owner_id=principal.id)
    url = blobs.public_url_for(key)
"""

from __future__ import annotations

import logging
import re
import secrets
import time
from pathlib import Path

from vaultboard.config import Config
from vaultboard.errors import InvalidUpload

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024

ALLOWED_TYPES = frozenset(
    {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "text/plain",
        "text/markdown",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "text/csv",
        "application/zip",
    }
)

_UNSAFE_NAME_RE = re.compile(r"[^a-zA-Z0-9.-]")


def sanitize_filename(name: str) -> str:
    """Replace everything but letters, digits, dots and dashes with ``_``."""
    return _UNSAFE_NAME_RE.sub("_", name) or "file"


class BlobStore:
    """Blobs on local disk, addressed by opaque keys."""

    def __init__(
        self,
        root: Path,
        public_url: str = "",
        max_bytes: int = MAX_UPLOAD_BYTES,
    ):
        self.root = Path(root)
        self.public_url = public_url.rstrip("/")
        self.max_bytes = max_bytes

    @classmethod
    def from_config(cls, cfg: Config) -> BlobStore:
        return cls(
            cfg.storage.blob_dir,
            public_url=cfg.storage.public_url,
            max_bytes=cfg.storage.max_upload_bytes,
        )

    def check_size(self, size: int) -> None:
        if size > self.max_bytes:
            limit_mb = self.max_bytes // (1024 * 1024)
            raise InvalidUpload(f"File size exceeds {limit_mb}MB limit")

    def validate(self, data: bytes, content_type: str | None) -> None:
        if not data:
            raise InvalidUpload("No file provided")
        self.check_size(len(data))
        base_type = (content_type or "").split(";")[0].strip().lower()
        if base_type not in ALLOWED_TYPES:
            raise InvalidUpload(
                "File type not allowed. Supported formats: "
                "PDF, DOC, DOCX, TXT, MD, XLSX, XLS, CSV, ZIP"
            )

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if not path.is_relative_to(self.root.resolve()):
            raise InvalidUpload(f"Invalid blob key: {key}")
        return path

    def store(self, data: bytes, content_type: str | None, filename: str, owner_id: str) -> str:
        """Validate and write a blob. Returns its key. Existing keys are never overwritten."""
        self.validate(data, content_type)
        # The token keeps same-name uploads within one millisecond apart.
        key = (
            f"{sanitize_filename(owner_id)}/{int(time.time() * 1000)}_"
            f"{secrets.token_hex(4)}_{sanitize_filename(filename)}"
        )
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("xb") as f:
            f.write(data)
        logger.info("Stored blob %s (%d bytes, %s)", key, len(data), content_type)
        return key

    def retrieve(self, key: str) -> bytes | None:
        path = self._path(key)
        if not path.is_file():
            return None
        return path.read_bytes()

    def delete(self, key: str) -> bool:
        """Remove a blob. Returns False when it does not exist."""
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def public_url_for(self, key: str) -> str:
        return f"{self.public_url}/blobs/{key}"
