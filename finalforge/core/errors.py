"""Finalize error taxonomy.

Every error here aborts the whole ``finalize release`` operation. None are
retried at this layer and none may be swallowed; the CLI turns them into a
single red line and a non-zero exit status.
"""

from __future__ import annotations


class FinalizeError(RuntimeError):
    """Base class for fatal, operation-aborting finalize errors."""


class NotReleaseDirectoryError(FinalizeError):
    """Raised when the working directory is not a release repository."""


class TarballNotFoundError(FinalizeError):
    """Raised when the source release tarball does not exist."""


class InvalidTarballError(FinalizeError):
    """Raised when the source release tarball fails structural validation."""


class AlreadyFinalError(FinalizeError):
    """Raised when the source tarball's version is not a development build."""


class VersionConflictError(FinalizeError):
    """Raised when the requested or computed version was already issued."""


class UnsyncedBlobsError(FinalizeError):
    """Raised when the working tree has large files not yet in the blobstore."""

    def __init__(self, message: str, blobs: list[str] | None = None) -> None:
        super().__init__(message)
        self.blobs: list[str] = list(blobs or [])


class MalformedArtifactError(FinalizeError):
    """Raised when an artifact lacks a fingerprint (tarball built by old tooling)."""


class UploadFailureError(FinalizeError):
    """Raised when streaming an artifact to the blobstore fails."""


class IndexCorruptionError(FinalizeError):
    """Raised when an index entry disagrees with what is being recorded."""


class IndexLockTimeoutError(FinalizeError):
    """Raised when an index lock cannot be acquired in time."""


class BlobstoreConfigError(FinalizeError):
    """Raised when the release repository's blobstore is not usable."""


class RepositoryIOError(FinalizeError):
    """Raised when the release repository cannot be read or written."""
