"""Capability protocols consumed by the finalize orchestrator.

The orchestrator depends only on these Protocols. Concrete implementations
(``ReleaseTarball``, ``LocalBlobstore``, ``LocalBlobManager``,
``ReleaseVersionIndex``, ``FinalBuildsIndex``) are passed in by composition;
tests pass doubles.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from pathlib import Path
from typing import Any, BinaryIO, Protocol, runtime_checkable

from finalforge.models.index import FinalBuildEntry
from finalforge.models.manifest import ArtifactKind
from finalforge.models.versioning import ReleaseVersion


@runtime_checkable
class ArtifactSource(Protocol):
    """A source (development) release tarball."""

    @property
    def path(self) -> Path:
        ...

    def exists(self) -> bool:
        ...

    def validate(self) -> None:
        """Raise ``InvalidTarballError`` if the tarball is structurally broken."""
        ...

    def version(self) -> str:
        ...

    def manifest(self) -> str:
        """Return the manifest as YAML document text."""
        ...

    def replace_manifest(self, document: dict[str, Any]) -> None:
        ...

    def create_from_unpacked(self, dest_path: Path) -> Path:
        ...

    def artifact_tarball_path(self, kind: ArtifactKind, name: str) -> Path:
        ...


@runtime_checkable
class ArtifactStoreClient(Protocol):
    """Opaque upload sink. Retries and timeouts, if any, live behind ``put``."""

    def put(self, stream: BinaryIO) -> str:
        """Store the stream's bytes and return an opaque blobstore id."""
        ...


@runtime_checkable
class VersionIndex(Protocol):
    """Issued versions of one named release. Append-only."""

    def latest_version(self) -> ReleaseVersion | None:
        ...

    def contains_version_string(self, version: str) -> bool:
        ...

    def add_version(self, key: str, payload: dict[str, Any]) -> None:
        ...

    def locked(self) -> AbstractContextManager[Any]:
        """Hold the index's single-writer lock across check-then-append."""
        ...


@runtime_checkable
class ContentIndex(Protocol):
    """Fingerprint -> stored artifact metadata, for one kind and name."""

    def get(self, fingerprint: str) -> FinalBuildEntry | None:
        ...

    def put(self, fingerprint: str, entry: FinalBuildEntry) -> None:
        ...

    def locked(self) -> AbstractContextManager[Any]:
        """Hold the index's single-writer lock across lookup-then-record."""
        ...


@runtime_checkable
class BlobManager(Protocol):
    """Working-tree large-file tracker."""

    def sync(self) -> None:
        ...

    def is_dirty(self) -> bool:
        ...

    def print_status(self) -> None:
        ...

    def blobs_to_upload(self) -> list[str]:
        ...
