"""Tests for LocalBlobstore — content addressing and integrity."""

from __future__ import annotations

import hashlib
import io
from pathlib import Path

import pytest

from finalforge.core.blobstore import BlobstoreError, BlobstoreIntegrityError, LocalBlobstore


class TestLocalBlobstore:
    def test_put_returns_sha256_id(self, tmp_path: Path):
        store = LocalBlobstore(tmp_path / "bs")
        blobstore_id = store.put(io.BytesIO(b"hello"))
        assert blobstore_id == hashlib.sha256(b"hello").hexdigest()
        assert store.get(blobstore_id) == b"hello"
        assert (tmp_path / "bs" / blobstore_id[:2] / blobstore_id[2:4] / blobstore_id).is_file()

    def test_put_same_content_twice(self, tmp_path: Path):
        store = LocalBlobstore(tmp_path / "bs")
        assert store.put(io.BytesIO(b"x")) == store.put(io.BytesIO(b"x"))

    def test_no_spool_files_left(self, tmp_path: Path):
        store = LocalBlobstore(tmp_path / "bs")
        store.put(io.BytesIO(b"x"))
        store.put(io.BytesIO(b"x"))
        assert not list((tmp_path / "bs").glob(".upload.*"))

    def test_missing_object(self, tmp_path: Path):
        store = LocalBlobstore(tmp_path / "bs")
        missing = "0" * 64
        assert store.exists(missing) is False
        assert store.verify(missing) is False
        with pytest.raises(BlobstoreError):
            store.get(missing)

    @pytest.mark.parametrize("bad_id", ["", "ab", "../../etc/passwd", "ZZZZ"])
    def test_invalid_ids_rejected(self, tmp_path: Path, bad_id: str):
        with pytest.raises(BlobstoreError):
            LocalBlobstore(tmp_path / "bs").exists(bad_id)

    def test_tampered_object_detected(self, tmp_path: Path):
        store = LocalBlobstore(tmp_path / "bs")
        blobstore_id = store.put(io.BytesIO(b"original"))
        path = tmp_path / "bs" / blobstore_id[:2] / blobstore_id[2:4] / blobstore_id
        path.write_bytes(b"tampered")

        assert store.verify(blobstore_id) is False
        with pytest.raises(BlobstoreIntegrityError):
            store.put(io.BytesIO(b"original"))
