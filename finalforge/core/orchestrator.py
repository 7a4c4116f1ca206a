"""Finalize orchestrator — turns a dev release tarball into a final release.

The FinalizeOrchestrator wires together the source tarball, the Version
Allocator, the Blob Sync Gate and the Deduplicating Uploader, and drives
them through the finalize state machine:

    validating -> allocating -> gating -> (dry_run_stop | committing -> done)

Any state may fail. Nothing persistent is written before ``committing``.
Inside ``committing`` the order is fixed:

    a. write the final manifest   releases/<name>/<name>-<version>.yml
    b. record the version         releases/<name>/index.yml
    c. pack the final tarball     releases/<name>/<name>-<version>.tgz
    d. upload packages, jobs, license (deduplicated by fingerprint)
    e. point config/dev.yml at the new manifest

A crash anywhere in ``committing`` leaves files that a re-run tolerates: the
final build indices only ever hold fingerprints whose upload completed.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from pathlib import Path

import yaml
from pydantic import ValidationError

from finalforge.config import FinalizeSettings
from finalforge.core.blob_gate import BlobSyncGate
from finalforge.core.errors import (
    AlreadyFinalError,
    InvalidTarballError,
    RepositoryIOError,
    TarballNotFoundError,
)
from finalforge.core.file_lock import atomic_write_text
from finalforge.core.interfaces import (
    ArtifactSource,
    ArtifactStoreClient,
    BlobManager,
    VersionIndex,
)
from finalforge.core.release_repo import ReleaseRepository
from finalforge.core.stage_machine import FinalizeStateMachine
from finalforge.core.uploader import DeduplicatingUploader, IndexFactory, UploadRequest
from finalforge.core.version_allocator import VersionAllocator, manifest_file_predicate
from finalforge.models.config import FinalizeOptions
from finalforge.models.index import StoredArtifactRef, VersionIndexEntry
from finalforge.models.manifest import ReleaseManifest
from finalforge.models.reports import FinalizeResult
from finalforge.models.stages import FinalizeState
from finalforge.models.versioning import InvalidVersionError, ReleaseVersion

logger = logging.getLogger(__name__)

ProgressReporter = Callable[[str], None]


class FinalizeOrchestrator:
    """Sequences one ``finalize release`` invocation.

    Parameters
    ----------
    source:
        The development release tarball.
    repository:
        The release repository being finalized into.
    store:
        Blobstore client receiving artifact uploads.
    blob_manager:
        Working-tree large-file tracker consulted by the sync gate.
    options:
        Dry-run flag and name/version overrides.
    settings:
        Worker pool size and other tunables. Defaults are used if omitted.
    version_index_factory:
        Returns the Version Index for a release name. Defaults to the
        repository's ``releases/<name>/`` index.
    content_index_factory:
        Returns the final builds index for ``(kind, name)``. Defaults to the
        repository's ``.final_builds/<kind>/<name>/`` index.
    progress:
        Receives human-readable progress lines. Defaults to ``logger.info``.
    """

    def __init__(
        self,
        source: ArtifactSource,
        *,
        repository: ReleaseRepository,
        store: ArtifactStoreClient,
        blob_manager: BlobManager,
        options: FinalizeOptions | None = None,
        settings: FinalizeSettings | None = None,
        version_index_factory: Callable[[str], VersionIndex] | None = None,
        content_index_factory: IndexFactory | None = None,
        progress: ProgressReporter | None = None,
    ) -> None:
        self.source = source
        self.repository = repository
        self.options = options or FinalizeOptions()
        self.settings = settings or FinalizeSettings()

        self.gate = BlobSyncGate(blob_manager)
        self.uploader = DeduplicatingUploader(
            store,
            content_index_factory or repository.final_builds_index,
            max_workers=self.settings.upload_workers,
        )
        self.state_machine = FinalizeStateMachine()

        self._version_index_factory = version_index_factory or repository.version_index
        self._progress = progress or logger.info

    @property
    def state(self) -> FinalizeState:
        return self.state_machine.state

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def finalize(self) -> FinalizeResult:
        """Run the whole finalize flow and return what was produced.

        Every error is re-raised after the state machine records FAILED.
        """
        try:
            manifest = self._validate()

            self.state_machine.transition(FinalizeState.ALLOCATING)
            final_name, final_version, allocator = self._allocate(manifest)

            self.state_machine.transition(FinalizeState.GATING)
            self.gate.check()

            if self.options.dry_run:
                self.state_machine.transition(FinalizeState.DRY_RUN_STOP)
                self._progress(
                    f"Dry run: would create final release {final_name}/{final_version} "
                    f"from dev release {manifest.name}/{manifest.version}"
                )
                return FinalizeResult(
                    dev_name=manifest.name,
                    dev_version=manifest.version,
                    final_name=final_name,
                    final_version=final_version,
                    dry_run=True,
                )

            self.state_machine.transition(FinalizeState.COMMITTING)
            result = self._commit(manifest, final_name, final_version, allocator)

            self.state_machine.transition(FinalizeState.DONE)
            return result
        except OSError as exc:
            error = RepositoryIOError(f"Release repository I/O failed: {exc}")
            self._record_failure(str(error))
            raise error from exc
        except Exception as exc:
            self._record_failure(str(exc) or type(exc).__name__)
            raise

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _validate(self) -> ReleaseManifest:
        if not self.source.exists():
            raise TarballNotFoundError(f"Cannot find release tarball {self.source.path}")

        self.source.validate()

        dev_version = self.source.version()
        try:
            is_dev = ReleaseVersion.parse(dev_version).is_dev_build
        except InvalidVersionError as err:
            raise InvalidTarballError(
                f"Release tarball has an invalid version {dev_version!r}"
            ) from err
        if not is_dev:
            raise AlreadyFinalError(f"Release tarball already has final version {dev_version}")

        try:
            return ReleaseManifest.from_document(self._manifest_document())
        except ValidationError as err:
            raise InvalidTarballError(
                f"Invalid release manifest in {self.source.path}: "
                f"{err.error_count()} validation error(s)"
            ) from err

    def _allocate(self, manifest: ReleaseManifest) -> tuple[str, str, VersionAllocator]:
        final_name = self.options.name_override or manifest.name
        version_index = self._version_index_factory(final_name)
        allocator = VersionAllocator(
            version_index,
            manifest_file_predicate(
                self.repository.context.release_dir(final_name), final_name
            ),
        )
        final_version = allocator.allocate(self.options.version_override)
        logger.info("Final release will be %s/%s", final_name, final_version)
        return final_name, final_version, allocator

    def _commit(
        self,
        manifest: ReleaseManifest,
        final_name: str,
        final_version: str,
        allocator: VersionAllocator,
    ) -> FinalizeResult:
        context = self.repository.context
        self._progress(
            f"Creating final release {final_name}/{final_version} "
            f"from dev release {manifest.name}/{manifest.version}"
        )

        # a. Rewrite and persist the manifest. Unknown keys are kept verbatim.
        document = self._manifest_document()
        document["name"] = final_name
        document["version"] = final_version
        self.source.replace_manifest(document)

        # The version is re-checked under the index lock before anything is written.
        manifest_path = context.manifest_path(final_name, final_version)
        entry = VersionIndexEntry(key=str(uuid.uuid4()), version=final_version)
        with allocator.index.locked():
            allocator.check_free(final_version)
            atomic_write_text(manifest_path, self.source.manifest())
            logger.info("Wrote release manifest %s", manifest_path)

            # b. Record the version.
            allocator.index.add_version(entry.key, entry.payload())

        # c. Pack the final tarball.
        tarball_path = Path(
            self.source.create_from_unpacked(context.tarball_path(final_name, final_version))
        )
        tarball_size = tarball_path.stat().st_size

        # d. Upload artifacts.
        requests = [
            UploadRequest(
                kind=kind,
                artifact=artifact,
                tarball_path=self.source.artifact_tarball_path(kind, artifact.name),
            )
            for kind, artifact in manifest.artifacts()
        ]
        refs = self.uploader.upload_all(requests, on_complete=self._report_upload)

        # e. Point the repository at the newest final manifest.
        self.repository.latest_release_filename = context.relative(manifest_path).as_posix()
        self.repository.save_config()

        return FinalizeResult(
            dev_name=manifest.name,
            dev_version=manifest.version,
            final_name=final_name,
            final_version=final_version,
            dry_run=False,
            manifest_path=manifest_path,
            tarball_path=tarball_path,
            tarball_size=tarball_size,
            artifacts=refs,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _manifest_document(self) -> dict:
        try:
            document = yaml.safe_load(self.source.manifest())
        except yaml.YAMLError as err:
            raise InvalidTarballError(f"Invalid release manifest YAML: {err}") from err
        if not isinstance(document, dict):
            raise InvalidTarballError("Release manifest must be a mapping")
        return document

    def _record_failure(self, reason: str) -> None:
        if self.state_machine.fail(reason) is None:
            return
        failed_in = self.state_machine.history[-1].from_state
        logger.info(
            "Finalize failed while %s: %s",
            failed_in.value, self.state_machine.failure_reason,
        )

    def _report_upload(self, ref: StoredArtifactRef) -> None:
        action = "uploaded" if ref.uploaded else "already in blobstore"
        self._progress(f"{ref.kind.value}/{ref.name} ({ref.version}): {action}")
