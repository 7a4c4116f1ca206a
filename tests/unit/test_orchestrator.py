"""Tests for FinalizeOrchestrator — phase order, dry-run purity, failures."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
import yaml

from finalforge.core.errors import (
    AlreadyFinalError,
    InvalidTarballError,
    MalformedArtifactError,
    RepositoryIOError,
    TarballNotFoundError,
    UnsyncedBlobsError,
    VersionConflictError,
)
from finalforge.core.orchestrator import FinalizeOrchestrator
from finalforge.core.release_tarball import ReleaseTarball
from finalforge.models.stages import FinalizeState


def _tree(root: Path) -> set[str]:
    return {p.relative_to(root).as_posix() for p in root.rglob("*")}


class TestFinalize:
    def test_first_final_release(self, make_dev_tarball, make_orchestrator, release_dir, store):
        orchestrator = make_orchestrator(make_dev_tarball())
        result = orchestrator.finalize()

        assert orchestrator.state is FinalizeState.DONE
        assert result.final_name == "dummy"
        assert result.final_version == "1"
        assert result.dev_version == "0.2-dev"
        assert result.manifest_path == release_dir / "releases" / "dummy" / "dummy-1.yml"
        assert result.tarball_path.is_file()
        assert result.tarball_size == result.tarball_path.stat().st_size
        assert result.uploaded_count == 3
        assert len(store.puts) == 3

    def test_manifest_rewritten_with_extra_keys(self, make_dev_tarball, make_orchestrator):
        result = make_orchestrator(make_dev_tarball()).finalize()
        manifest = yaml.safe_load(result.manifest_path.read_text())
        assert manifest["name"] == "dummy"
        assert manifest["version"] == "1"
        assert manifest["commit_hash"] == "00000000"
        assert manifest["uncommitted_changes"] is False

    def test_dev_config_points_at_manifest(self, make_dev_tarball, make_orchestrator, release_dir):
        make_orchestrator(make_dev_tarball()).finalize()
        dev = yaml.safe_load((release_dir / "config" / "dev.yml").read_text())
        assert dev["latest_release_filename"] == "releases/dummy/dummy-1.yml"

    def test_name_and_version_overrides(self, make_dev_tarball, make_orchestrator, release_dir):
        result = make_orchestrator(
            make_dev_tarball(), name_override="renamed", version_override="2.5"
        ).finalize()
        assert (result.final_name, result.final_version) == ("renamed", "2.5")
        assert (release_dir / "releases" / "renamed" / "renamed-2.5.yml").is_file()
        assert (release_dir / "releases" / "renamed" / "renamed-2.5.tgz").is_file()

    def test_second_finalize_increments(self, make_dev_tarball, make_orchestrator, store):
        make_orchestrator(make_dev_tarball()).finalize()
        result = make_orchestrator(make_dev_tarball(version="0.3-dev")).finalize()
        assert result.final_version == "2"
        assert result.uploaded_count == 0
        assert result.deduplicated_count == 3
        assert len(store.puts) == 3

    def test_license_uploaded(self, make_dev_tarball, make_orchestrator, release_dir):
        result = make_orchestrator(make_dev_tarball(license=b"MIT")).finalize()
        kinds = [ref.kind.value for ref in result.artifacts]
        assert kinds == ["packages", "packages", "jobs", "license"]
        assert (release_dir / ".final_builds" / "license" / "license" / "index.yml").is_file()

    def test_progress_lines(
        self, make_dev_tarball, repository, store, blob_manager, settings, tmp_path
    ):
        lines: list[str] = []
        FinalizeOrchestrator(
            ReleaseTarball(make_dev_tarball(), work_dir=tmp_path),
            repository=repository,
            store=store,
            blob_manager=blob_manager,
            settings=settings,
            progress=lines.append,
        ).finalize()

        assert lines[0] == "Creating final release dummy/1 from dev release dummy/0.2-dev"
        assert "packages/pkg-a" in lines[1]
        assert lines[1].endswith("uploaded")


class TestDryRun:
    def test_dry_run_writes_nothing(self, make_dev_tarball, make_orchestrator, release_dir, store):
        before = _tree(release_dir)
        orchestrator = make_orchestrator(make_dev_tarball(), dry_run=True)
        result = orchestrator.finalize()

        assert orchestrator.state is FinalizeState.DRY_RUN_STOP
        assert result.dry_run is True
        assert result.final_version == "1"
        assert result.manifest_path is None
        assert _tree(release_dir) == before
        assert store.puts == []

    def test_dry_run_still_gates(self, make_dev_tarball, make_orchestrator, release_dir):
        (release_dir / "blobs").mkdir()
        (release_dir / "blobs" / "new.tgz").write_bytes(b"new")
        with pytest.raises(UnsyncedBlobsError):
            make_orchestrator(make_dev_tarball(), dry_run=True).finalize()

    def test_dry_run_still_detects_conflict(self, make_dev_tarball, make_orchestrator):
        make_orchestrator(make_dev_tarball()).finalize()
        with pytest.raises(VersionConflictError):
            make_orchestrator(make_dev_tarball(), dry_run=True, version_override="1").finalize()


class TestFailures:
    def test_tarball_not_found(self, make_orchestrator, tmp_path):
        orchestrator = make_orchestrator(tmp_path / "missing.tgz")
        with pytest.raises(TarballNotFoundError, match="Cannot find release tarball"):
            orchestrator.finalize()
        assert orchestrator.state is FinalizeState.FAILED
        assert orchestrator.state_machine.failure_reason.startswith("Cannot find")

    def test_already_final(self, make_dev_tarball, make_orchestrator):
        with pytest.raises(AlreadyFinalError, match="already has final version 3"):
            make_orchestrator(make_dev_tarball(version="3")).finalize()

    def test_invalid_dev_version(self, make_dev_tarball, make_orchestrator):
        with pytest.raises(InvalidTarballError):
            make_orchestrator(make_dev_tarball(version="not a version")).finalize()

    def test_gate_aborts_before_commit(self, make_dev_tarball, make_orchestrator, release_dir, store):
        (release_dir / "blobs").mkdir()
        (release_dir / "blobs" / "new.tgz").write_bytes(b"new")
        before = _tree(release_dir)

        orchestrator = make_orchestrator(make_dev_tarball())
        with pytest.raises(UnsyncedBlobsError):
            orchestrator.finalize()

        assert _tree(release_dir) == before
        assert store.puts == []
        assert [t.from_state for t in orchestrator.state_machine.history][-1] is FinalizeState.GATING

    def test_version_conflict_writes_nothing(self, make_dev_tarball, make_orchestrator, release_dir):
        for dev_version in ("0.1-dev", "0.2-dev", "0.3-dev"):
            make_orchestrator(make_dev_tarball(version=dev_version)).finalize()
        before = _tree(release_dir)

        with pytest.raises(VersionConflictError):
            make_orchestrator(make_dev_tarball(), version_override="3").finalize()
        assert _tree(release_dir) == before

    def test_missing_fingerprint(self, make_dev_tarball, make_orchestrator, store):
        with pytest.raises(MalformedArtifactError):
            make_orchestrator(make_dev_tarball(with_fingerprints=False)).finalize()
        assert store.puts == []

    def test_repository_io_error_wrapped(self, make_dev_tarball, make_orchestrator, release_dir):
        (release_dir / "releases").write_text("not a directory", encoding="utf-8")

        orchestrator = make_orchestrator(make_dev_tarball())
        with pytest.raises(RepositoryIOError, match="I/O failed") as excinfo:
            orchestrator.finalize()

        assert isinstance(excinfo.value.__cause__, OSError)
        assert orchestrator.state is FinalizeState.FAILED
        assert orchestrator.state_machine.failure_reason.startswith("Release repository I/O")
        assert orchestrator.state_machine.history[-1].from_state is FinalizeState.COMMITTING

    def test_failure_logged_with_phase(self, make_orchestrator, tmp_path, caplog):
        caplog.set_level(logging.INFO, logger="finalforge.core.orchestrator")
        with pytest.raises(TarballNotFoundError):
            make_orchestrator(tmp_path / "missing.tgz").finalize()
        assert "Finalize failed while validating: Cannot find" in caplog.text
