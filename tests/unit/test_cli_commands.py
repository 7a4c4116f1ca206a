"""Tests for the Typer CLI — finalize release and blobs status."""

from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from finalforge.cli.app import app

runner = CliRunner()


def _finalize(release_dir: Path, tarball: Path, *args: str):
    return runner.invoke(
        app, ["finalize", "release", str(tarball), "--dir", str(release_dir), *args]
    )


class TestFinalizeRelease:
    def test_success_panel(self, release_dir: Path, make_dev_tarball):
        result = _finalize(release_dir, make_dev_tarball())
        assert result.exit_code == 0, result.output
        assert "Final release created!" in result.output
        assert "dummy-1.yml" in result.output
        assert (release_dir / "releases" / "dummy" / "dummy-1.tgz").is_file()

    def test_dry_run(self, release_dir: Path, make_dev_tarball):
        result = _finalize(release_dir, make_dev_tarball(), "--dry-run")
        assert result.exit_code == 0, result.output
        assert "Dry run complete." in result.output
        assert not (release_dir / "releases").exists()

    def test_name_and_version(self, release_dir: Path, make_dev_tarball):
        result = _finalize(
            release_dir, make_dev_tarball(), "--name", "custom", "--version", "5"
        )
        assert result.exit_code == 0, result.output
        assert (release_dir / "releases" / "custom" / "custom-5.yml").is_file()

    def test_missing_tarball(self, release_dir: Path, tmp_path: Path):
        result = _finalize(release_dir, tmp_path / "nope.tgz")
        assert result.exit_code == 1
        assert "Cannot find release tarball" in result.output

    def test_not_a_release_dir(self, tmp_path: Path, make_dev_tarball):
        result = _finalize(tmp_path / "elsewhere", make_dev_tarball())
        assert result.exit_code == 1
        assert "not a release repository" in result.output

    def test_invalid_version_flag(self, release_dir: Path, make_dev_tarball):
        result = _finalize(release_dir, make_dev_tarball(), "--version", "1..2")
        assert result.exit_code == 1
        assert "Finalize failed" in result.output

    def test_version_conflict(self, release_dir: Path, make_dev_tarball):
        assert _finalize(release_dir, make_dev_tarball()).exit_code == 0
        result = _finalize(release_dir, make_dev_tarball(), "--version", "1")
        assert result.exit_code == 1
        assert "Release version already exists" in result.output

    def test_repository_write_failure(self, release_dir: Path, make_dev_tarball):
        (release_dir / "releases").write_text("not a directory", encoding="utf-8")
        result = _finalize(release_dir, make_dev_tarball())
        assert result.exit_code == 1
        assert "Finalize failed" in result.output
        assert "I/O failed" in result.output
        assert "Traceback" not in result.output

    def test_name_with_path_separator_rejected(self, release_dir: Path, make_dev_tarball):
        result = _finalize(release_dir, make_dev_tarball(), "--name", "../escaped")
        assert result.exit_code == 1
        assert "Invalid release name" in result.output
        assert not (release_dir / "escaped").exists()
        assert not (release_dir / "releases").exists()


class TestBlobsStatus:
    def test_clean(self, release_dir: Path):
        result = runner.invoke(app, ["blobs", "status", "--dir", str(release_dir)])
        assert result.exit_code == 0, result.output
        assert "All blobs are in sync." in result.output

    def test_dirty(self, release_dir: Path):
        (release_dir / "blobs").mkdir()
        (release_dir / "blobs" / "big.tgz").write_bytes(b"big")
        result = runner.invoke(app, ["blobs", "status", "--dir", str(release_dir)])
        assert result.exit_code == 1
        assert "big.tgz" in result.output
