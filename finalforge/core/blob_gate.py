"""Blob Sync Gate — refuse to finalize while large files are unpublished.

A final release must never reference blob content that is not durably in
the blobstore. The gate syncs the working tree, then aborts with
``UnsyncedBlobsError`` if anything still needs uploading.
"""

from __future__ import annotations

import logging

from finalforge.core.errors import UnsyncedBlobsError
from finalforge.core.interfaces import BlobManager

logger = logging.getLogger(__name__)


class BlobSyncGate:
    """Pre-flight check run before any finalize side effect."""

    def __init__(self, blob_manager: BlobManager) -> None:
        self._blob_manager = blob_manager

    def check(self) -> None:
        """Raise ``UnsyncedBlobsError`` if the working tree has unuploaded blobs."""
        self._blob_manager.sync()
        if not self._blob_manager.is_dirty():
            logger.debug("Blob sync gate passed")
            return

        self._blob_manager.print_status()
        pending = self._blob_manager.blobs_to_upload()
        logger.info("Blob sync gate closed: %d blob(s) not uploaded", len(pending))
        raise UnsyncedBlobsError(
            f"{len(pending)} blob(s) not uploaded: {', '.join(pending)}. "
            "Please upload new blobs before finalizing",
            blobs=pending,
        )
