"""Deduplicating uploader — at most one blobstore upload per fingerprint.

For each artifact the kind- and name-scoped ``ContentIndex`` is consulted
under its single-writer lock. A hit returns the recorded reference without
touching the blobstore; a miss streams the artifact tarball to the blobstore
and records ``{version, sha1, blobstore_id}`` only after the upload
succeeded. The lock is held across lookup, upload and record, so two
finalizes racing on the same new fingerprint upload it once.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from finalforge.core.blobstore import BlobstoreError
from finalforge.core.errors import (
    IndexCorruptionError,
    MalformedArtifactError,
    UploadFailureError,
)
from finalforge.core.interfaces import ArtifactStoreClient, ContentIndex
from finalforge.models.index import FinalBuildEntry, StoredArtifactRef
from finalforge.models.manifest import Artifact, ArtifactKind

logger = logging.getLogger(__name__)

IndexFactory = Callable[[ArtifactKind, str], ContentIndex]
ProgressCallback = Callable[[StoredArtifactRef], None]


class UploadRequest(BaseModel):
    """One artifact to upload, with its local tarball."""

    model_config = ConfigDict(frozen=True)

    kind: ArtifactKind
    artifact: Artifact
    tarball_path: Path


class DeduplicatingUploader:
    """Uploads artifacts to the blobstore, skipping known fingerprints.

    Parameters
    ----------
    store:
        The blobstore client. Retry and timeout policy belong to it.
    index_factory:
        Returns the ``ContentIndex`` for ``(kind, artifact_name)``.
    max_workers:
        Size of the pool used by :meth:`upload_all`.
    """

    def __init__(
        self,
        store: ArtifactStoreClient,
        index_factory: IndexFactory,
        *,
        max_workers: int = 4,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._store = store
        self._index_factory = index_factory
        self._max_workers = max_workers

    @staticmethod
    def check_artifact(artifact: Artifact) -> None:
        if not artifact.fingerprint:
            raise MalformedArtifactError(
                f"Cannot find artifact complete information for {artifact.name!r}, "
                "please upgrade tarball to newer version"
            )

    def upload(
        self, artifact: Artifact, kind: ArtifactKind, tarball_path: Path
    ) -> StoredArtifactRef:
        """Upload *artifact* unless its fingerprint is already indexed."""
        self.check_artifact(artifact)
        fingerprint = artifact.fingerprint
        index = self._index_factory(kind, artifact.name)

        with index.locked():
            existing = index.get(fingerprint)
            if existing is not None:
                if artifact.sha1 and existing.sha1 != artifact.sha1:
                    raise IndexCorruptionError(
                        f"{kind.value}/{artifact.name}: fingerprint {fingerprint} is "
                        f"recorded with sha1 {existing.sha1}, tarball has {artifact.sha1}"
                    )
                logger.info(
                    "%s/%s (%s) already in blobstore as %s",
                    kind.value, artifact.name, artifact.version, existing.blobstore_id,
                )
                return _make_ref(kind, artifact, existing, uploaded=False)

            try:
                with open(tarball_path, "rb") as f:
                    blobstore_id = self._store.put(f)
            except (OSError, BlobstoreError) as exc:
                raise UploadFailureError(
                    f"Failed to upload {kind.value}/{artifact.name} "
                    f"from {tarball_path}: {exc}"
                ) from exc

            entry = FinalBuildEntry(
                version=artifact.version,
                sha1=artifact.sha1,
                blobstore_id=blobstore_id,
            )
            index.put(fingerprint, entry)

        logger.info(
            "Uploaded %s/%s (%s) as %s",
            kind.value, artifact.name, artifact.version, blobstore_id,
        )
        return _make_ref(kind, artifact, entry, uploaded=True)

    def upload_all(
        self,
        requests: Sequence[UploadRequest],
        on_complete: ProgressCallback | None = None,
    ) -> list[StoredArtifactRef]:
        """Upload many artifacts on a bounded worker pool.

        Every artifact is checked for a fingerprint before any upload starts.
        Results come back in request order. If uploads fail, the first failure
        in request order is raised once all in-flight uploads have settled;
        successful uploads stay recorded, failed ones record nothing.
        """
        for request in requests:
            self.check_artifact(request.artifact)

        if not requests:
            return []

        workers = min(self._max_workers, len(requests))
        futures: list[Future[StoredArtifactRef]] = []
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="finalforge-upload"
        ) as executor:
            for request in requests:
                futures.append(
                    executor.submit(
                        self.upload, request.artifact, request.kind, request.tarball_path
                    )
                )

        refs: list[StoredArtifactRef] = []
        for future in futures:
            ref = future.result()
            if on_complete is not None:
                on_complete(ref)
            refs.append(ref)
        return refs


def _make_ref(
    kind: ArtifactKind, artifact: Artifact, entry: FinalBuildEntry, *, uploaded: bool
) -> StoredArtifactRef:
    return StoredArtifactRef(
        kind=kind,
        name=artifact.name,
        fingerprint=artifact.fingerprint,
        version=entry.version,
        sha1=entry.sha1,
        blobstore_id=entry.blobstore_id,
        uploaded=uploaded,
    )
