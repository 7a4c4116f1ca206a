"""Local, content-addressed blobstore — the default ``ArtifactStoreClient``.

Storage layout: {base_path}/{sha256[0:2]}/{sha256[2:4]}/{sha256}
The blobstore id of an object is its SHA-256 hex digest. No delete method:
objects are immutable once stored.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from pathlib import Path
from typing import BinaryIO

from finalforge.core.errors import FinalizeError
from finalforge.core.hasher import sha256_file

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024


class BlobstoreError(FinalizeError):
    """Raised when the blobstore cannot store or return an object."""


class BlobstoreIntegrityError(BlobstoreError):
    """Raised when a stored object's hash does not match its id."""


class LocalBlobstore:
    """SHA-256 keyed, immutable blobstore on a local directory.

    Storing the same content twice is a no-op and returns the same id.

    Parameters
    ----------
    base_path:
        Root directory for stored objects. Created on first write.
    """

    def __init__(self, base_path: Path) -> None:
        self._base = Path(base_path)

    @property
    def base_path(self) -> Path:
        return self._base

    def _object_path(self, blobstore_id: str) -> Path:
        if len(blobstore_id) < 4 or not all(c in "0123456789abcdef" for c in blobstore_id):
            raise BlobstoreError(f"Invalid blobstore id: {blobstore_id!r}")
        return self._base / blobstore_id[:2] / blobstore_id[2:4] / blobstore_id

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    def put(self, stream: BinaryIO) -> str:
        """Stream *stream* into the store and return its blobstore id.

        Bytes are spooled to a temp file in the store while hashing, then
        moved into place, so a crash never leaves a partial object at a
        valid address.
        """
        self._base.mkdir(parents=True, exist_ok=True)
        h = hashlib.sha256()
        fd, tmp = tempfile.mkstemp(prefix=".upload.", dir=self._base)
        try:
            with os.fdopen(fd, "wb") as out:
                for chunk in iter(lambda: stream.read(_CHUNK_SIZE), b""):
                    h.update(chunk)
                    out.write(chunk)
                out.flush()
                os.fsync(out.fileno())

            blobstore_id = h.hexdigest()
            path = self._object_path(blobstore_id)
            if path.exists():
                if not self.verify(blobstore_id):
                    raise BlobstoreIntegrityError(
                        f"Existing object {blobstore_id} failed integrity check"
                    )
            else:
                path.parent.mkdir(parents=True, exist_ok=True)
                os.replace(tmp, path)
        finally:
            if os.path.exists(tmp):
                os.remove(tmp)

        logger.debug("LocalBlobstore: stored %s", blobstore_id)
        return blobstore_id

    # ------------------------------------------------------------------
    # Retrieve
    # ------------------------------------------------------------------

    def get(self, blobstore_id: str) -> bytes:
        path = self._object_path(blobstore_id)
        if not path.exists():
            raise BlobstoreError(f"Object not found: {blobstore_id}")
        return path.read_bytes()

    def exists(self, blobstore_id: str) -> bool:
        return self._object_path(blobstore_id).exists()

    def verify(self, blobstore_id: str) -> bool:
        """Re-hash a stored object and compare against its id."""
        path = self._object_path(blobstore_id)
        if not path.exists():
            return False
        return sha256_file(path) == blobstore_id
