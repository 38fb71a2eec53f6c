"""Tests for vaultboard.storage.blobs."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from vaultboard.errors import InvalidUpload
from vaultboard.storage.blobs import BlobStore, sanitize_filename


@pytest.fixture
def blob_store(tmp_path):
    return BlobStore(tmp_path, public_url="https://vault.example.com/", max_bytes=1024)


class TestSanitize:
    def test_replaces_unsafe_characters(self):
        assert sanitize_filename("my report (v2).pdf") == "my_report__v2_.pdf"

    def test_keeps_dots_and_dashes(self):
        assert sanitize_filename("run-book.v1.md") == "run-book.v1.md"

    def test_path_separators(self):
        assert "/" not in sanitize_filename("../../etc/passwd")


class TestStore:
    def test_round_trip(self, blob_store, tmp_path):
        key = blob_store.store(b"hello", "text/plain", "notes.txt", owner_id="u1")
        assert key.startswith("u1/")
        assert key.endswith("_notes.txt")
        assert blob_store.retrieve(key) == b"hello"
        assert (tmp_path / key).is_file()

    def test_content_type_parameters_ignored(self, blob_store):
        key = blob_store.store(b"a,b", "text/csv; charset=utf-8", "x.csv", owner_id="u1")
        assert blob_store.retrieve(key) == b"a,b"

    def test_too_large(self, blob_store):
        with pytest.raises(InvalidUpload, match="size"):
            blob_store.store(b"x" * 1025, "text/plain", "big.txt", owner_id="u1")

    def test_type_not_allowed(self, blob_store):
        with pytest.raises(InvalidUpload, match="not allowed"):
            blob_store.store(b"MZ", "application/x-msdownload", "setup.exe", owner_id="u1")

    def test_empty(self, blob_store):
        with pytest.raises(InvalidUpload):
            blob_store.store(b"", "text/plain", "empty.txt", owner_id="u1")

    def test_default_limit_is_ten_mib(self, tmp_path):
        assert BlobStore(tmp_path).max_bytes == 10 * 1024 * 1024


class TestRetrieveDelete:
    def test_missing(self, blob_store):
        assert blob_store.retrieve("u1/nope.txt") is None
        assert blob_store.delete("u1/nope.txt") is False

    def test_delete(self, blob_store):
        key = blob_store.store(b"bye", "text/plain", "bye.txt", owner_id="u1")
        assert blob_store.delete(key) is True
        assert blob_store.retrieve(key) is None

    def test_same_name_same_millisecond(self, blob_store):
        with patch("vaultboard.storage.blobs.time.time", return_value=1700000000.0):
            first = blob_store.store(b"one", "text/plain", "notes.txt", owner_id="u1")
            second = blob_store.store(b"two", "text/plain", "notes.txt", owner_id="u1")
        assert first != second
        assert first.startswith("u1/1700000000000_")
        assert blob_store.retrieve(first) == b"one"
        assert blob_store.retrieve(second) == b"two"

    def test_check_size(self, blob_store):
        blob_store.check_size(1024)
        with pytest.raises(InvalidUpload, match="exceeds"):
            blob_store.check_size(1025)

    def test_key_cannot_escape_root(self, blob_store):
        with pytest.raises(InvalidUpload):
            blob_store.retrieve("../outside.txt")


class TestPublicUrl:
    def test_url(self, blob_store):
        assert blob_store.public_url_for("u1/1_a.pdf") == "https://vault.example.com/blobs/u1/1_a.pdf"
