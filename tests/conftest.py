"""Shared test fixtures for Finalforge."""

from __future__ import annotations

import io
import tarfile
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any, BinaryIO

import pytest
import yaml

from finalforge.config import FinalizeSettings
from finalforge.core.blob_manager import LocalBlobManager
from finalforge.core.blobstore import LocalBlobstore
from finalforge.core.hasher import sha1_hex
from finalforge.core.orchestrator import FinalizeOrchestrator
from finalforge.core.release_repo import ReleaseRepository
from finalforge.core.release_tarball import ReleaseTarball
from finalforge.models.config import FinalizeOptions, RepositoryContext


def fingerprint_of(content: bytes) -> str:
    """Deterministic stand-in for an upstream-computed fingerprint."""
    return sha1_hex(b"fingerprint:" + content)


class RecordingStore:
    """ArtifactStoreClient double: delegates to a LocalBlobstore and counts puts."""

    def __init__(self, inner: LocalBlobstore, *, fail_with: Exception | None = None) -> None:
        self.inner = inner
        self.fail_with = fail_with
        self.puts: list[str] = []
        self._lock = threading.Lock()

    def put(self, stream: BinaryIO) -> str:
        if self.fail_with is not None:
            raise self.fail_with
        blobstore_id = self.inner.put(stream)
        with self._lock:
            self.puts.append(blobstore_id)
        return blobstore_id

    def exists(self, blobstore_id: str) -> bool:
        return self.inner.exists(blobstore_id)

    def get(self, blobstore_id: str) -> bytes:
        return self.inner.get(blobstore_id)


@pytest.fixture
def blobstore_dir(tmp_path: Path) -> Path:
    return tmp_path / "blobstore"


@pytest.fixture
def release_dir(tmp_path: Path, blobstore_dir: Path) -> Path:
    """A minimal release repository configured with a local blobstore."""
    root = tmp_path / "release-repo"
    for name in ("config", "jobs", "packages", "src"):
        (root / name).mkdir(parents=True)
    (root / "config" / "final.yml").write_text(
        yaml.safe_dump({
            "name": "dummy",
            "blobstore": {
                "provider": "local",
                "options": {"blobstore_path": str(blobstore_dir)},
            },
        }),
        encoding="utf-8",
    )
    return root


@pytest.fixture
def context(release_dir: Path) -> RepositoryContext:
    return RepositoryContext(root=release_dir)


@pytest.fixture
def repository(context: RepositoryContext) -> ReleaseRepository:
    return ReleaseRepository(context, lock_timeout=5.0)


@pytest.fixture
def blobstore(blobstore_dir: Path) -> LocalBlobstore:
    return LocalBlobstore(blobstore_dir)


@pytest.fixture
def store(blobstore: LocalBlobstore) -> RecordingStore:
    return RecordingStore(blobstore)


@pytest.fixture
def blob_manager(release_dir: Path, blobstore: LocalBlobstore) -> LocalBlobManager:
    return LocalBlobManager(release_dir, blobstore)


@pytest.fixture
def settings() -> FinalizeSettings:
    return FinalizeSettings(upload_workers=2, lock_timeout_seconds=5.0)


# ---------------------------------------------------------------------------
# Dev release tarball factory
# ---------------------------------------------------------------------------


def _add_bytes(tar: tarfile.TarFile, arcname: str, data: bytes) -> None:
    info = tarfile.TarInfo(arcname)
    info.size = len(data)
    tar.addfile(info, io.BytesIO(data))


def _artifact_entry(name: str, content: bytes, with_fingerprint: bool) -> dict[str, Any]:
    fingerprint = fingerprint_of(content)
    entry: dict[str, Any] = {
        "name": name,
        "version": fingerprint,
        "sha1": sha1_hex(content),
        "dependencies": [],
    }
    if with_fingerprint:
        entry["fingerprint"] = fingerprint
    return entry


@pytest.fixture
def make_dev_tarball(tmp_path: Path) -> Callable[..., Path]:
    """Factory fixture: write a dev release tarball and return its path.

    ``packages`` and ``jobs`` map artifact names to tarball bytes.
    """
    counter = iter(range(1_000_000))

    def _factory(
        name: str = "dummy",
        version: str = "0.2-dev",
        packages: dict[str, bytes] | None = None,
        jobs: dict[str, bytes] | None = None,
        license: bytes | None = None,
        with_fingerprints: bool = True,
        extra: dict[str, Any] | None = None,
        manifest_override: dict[str, Any] | None = None,
        skip_members: tuple[str, ...] = (),
    ) -> Path:
        packages = {"pkg-a": b"package a", "pkg-b": b"package b"} if packages is None else packages
        jobs = {"dummy": b"job dummy"} if jobs is None else jobs

        manifest: dict[str, Any] = {
            "name": name,
            "version": version,
            "commit_hash": "00000000",
            "uncommitted_changes": False,
            "packages": [
                _artifact_entry(n, c, with_fingerprints) for n, c in packages.items()
            ],
            "jobs": [_artifact_entry(n, c, with_fingerprints) for n, c in jobs.items()],
        }
        if license is not None:
            manifest["license"] = _artifact_entry("license", license, with_fingerprints)
        manifest.update(extra or {})
        if manifest_override is not None:
            manifest = manifest_override

        members: dict[str, bytes] = {
            "release.MF": yaml.safe_dump(manifest, sort_keys=False).encode("utf-8"),
        }
        members.update({f"packages/{n}.tgz": c for n, c in packages.items()})
        members.update({f"jobs/{n}.tgz": c for n, c in jobs.items()})
        if license is not None:
            members["license.tgz"] = license

        out_dir = tmp_path / "dev-tarballs"
        out_dir.mkdir(exist_ok=True)
        path = out_dir / f"{name}-{version}-{next(counter)}.tgz"
        with tarfile.open(path, "w:gz") as tar:
            for arcname, data in members.items():
                if arcname not in skip_members:
                    _add_bytes(tar, arcname, data)
        return path

    return _factory


@pytest.fixture
def make_orchestrator(
    repository: ReleaseRepository,
    store: RecordingStore,
    blob_manager: LocalBlobManager,
    settings: FinalizeSettings,
    tmp_path: Path,
) -> Callable[..., FinalizeOrchestrator]:
    """Factory fixture: orchestrator over the test repository and store."""

    def _factory(tarball_path: Path, **options: Any) -> FinalizeOrchestrator:
        return FinalizeOrchestrator(
            ReleaseTarball(tarball_path, work_dir=tmp_path),
            repository=repository,
            store=store,
            blob_manager=blob_manager,
            options=FinalizeOptions(**options),
            settings=settings,
        )

    return _factory
