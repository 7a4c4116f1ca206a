"""Source release tarball — a gzip tar holding ``release.MF`` and artifact tarballs.

Layout inside the archive::

    release.MF
    packages/<name>.tgz
    jobs/<name>.tgz
    license.tgz          (optional)

The archive is unpacked once into a private temp directory. Manifest
replacement edits the unpacked copy; ``create_from_unpacked`` re-packs it.
The source archive itself is never modified.
"""

from __future__ import annotations

import logging
import os
import shutil
import tarfile
import tempfile
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from finalforge.core.errors import InvalidTarballError
from finalforge.core.hasher import sha1_file
from finalforge.models.manifest import ArtifactKind, ReleaseManifest

logger = logging.getLogger(__name__)

MANIFEST_NAME = "release.MF"
LICENSE_TARBALL = "license.tgz"


def _normalize(info: tarfile.TarInfo) -> tarfile.TarInfo:
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    return info


class ReleaseTarball:
    """A release tarball on disk.

    Parameters
    ----------
    tarball_path:
        Path to the ``.tgz`` file.
    work_dir:
        Parent directory for the temporary unpack directory (system temp
        directory by default).
    """

    def __init__(self, tarball_path: Path, work_dir: Path | None = None) -> None:
        self._path = Path(tarball_path)
        self._work_dir = work_dir
        self._unpack_dir: Path | None = None

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    # ------------------------------------------------------------------
    # Unpacking
    # ------------------------------------------------------------------

    def _unpacked(self) -> Path:
        if self._unpack_dir is not None:
            return self._unpack_dir

        target = Path(tempfile.mkdtemp(prefix="finalforge-release-", dir=self._work_dir))
        try:
            with tarfile.open(self._path, "r:*") as tar:
                tar.extractall(target, filter="data")
        except (tarfile.TarError, OSError, EOFError) as err:
            shutil.rmtree(target, ignore_errors=True)
            raise InvalidTarballError(
                f"Cannot unpack release tarball {self._path}: {err}"
            ) from err

        self._unpack_dir = target
        logger.debug("Unpacked %s into %s", self._path, target)
        return target

    def cleanup(self) -> None:
        """Remove the temporary unpack directory."""
        if self._unpack_dir is not None:
            shutil.rmtree(self._unpack_dir, ignore_errors=True)
            self._unpack_dir = None

    def __enter__(self) -> ReleaseTarball:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cleanup()

    # ------------------------------------------------------------------
    # Manifest
    # ------------------------------------------------------------------

    def manifest(self) -> str:
        """The manifest as YAML text (the replaced one, after ``replace_manifest``)."""
        path = self._unpacked() / MANIFEST_NAME
        if not path.is_file():
            raise InvalidTarballError(f"Release tarball {self._path} has no {MANIFEST_NAME}")
        return path.read_text(encoding="utf-8")

    def manifest_document(self) -> dict[str, Any]:
        try:
            document = yaml.safe_load(self.manifest())
        except yaml.YAMLError as err:
            raise InvalidTarballError(f"Invalid YAML in {MANIFEST_NAME}: {err}") from err
        if not isinstance(document, dict):
            raise InvalidTarballError(f"{MANIFEST_NAME} must contain a mapping")
        return document

    def release_manifest(self) -> ReleaseManifest:
        try:
            return ReleaseManifest.from_document(self.manifest_document())
        except ValidationError as err:
            raise InvalidTarballError(
                f"Invalid {MANIFEST_NAME} in {self._path}: "
                f"{err.error_count()} validation error(s)"
            ) from err

    def version(self) -> str:
        return str(self.manifest_document().get("version", ""))

    def replace_manifest(self, document: dict[str, Any]) -> None:
        """Overwrite ``release.MF`` in the unpacked copy."""
        path = self._unpacked() / MANIFEST_NAME
        path.write_text(
            yaml.safe_dump(document, default_flow_style=False, sort_keys=False),
            encoding="utf-8",
        )

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    def artifact_tarball_path(self, kind: ArtifactKind, name: str) -> Path:
        root = self._unpacked()
        if kind is ArtifactKind.LICENSE:
            return root / LICENSE_TARBALL
        return root / kind.value / f"{name}.tgz"

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """Check the archive's structure and artifact checksums.

        Fingerprints are deliberately not required here; the uploader
        rejects artifacts without one.
        """
        manifest = self.release_manifest()

        problems: list[str] = []
        for kind, artifact in manifest.artifacts():
            path = self.artifact_tarball_path(kind, artifact.name)
            label = f"{kind.value}/{artifact.name}"
            if not path.is_file():
                problems.append(f"{label} tarball is missing")
            elif artifact.sha1 and sha1_file(path) != artifact.sha1:
                problems.append(f"{label} sha1 does not match manifest")

        if problems:
            raise InvalidTarballError(
                f"Release tarball {self._path} is invalid: {'; '.join(problems)}"
            )
        logger.debug(
            "Validated %s: %d package(s), %d job(s), license=%s",
            self._path, len(manifest.packages), len(manifest.jobs),
            manifest.license is not None,
        )

    # ------------------------------------------------------------------
    # Packing
    # ------------------------------------------------------------------

    def create_from_unpacked(self, dest_path: Path) -> Path:
        """Write a gzip tar of the unpacked tree to *dest_path*.

        Members are added in sorted order with normalized ownership. The
        archive is written beside *dest_path* and moved into place.
        """
        root = self._unpacked()
        dest_path = Path(dest_path)
        dest_path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp = tempfile.mkstemp(prefix=".tmp.", suffix=".tgz", dir=dest_path.parent)
        os.close(fd)
        try:
            with tarfile.open(tmp, "w:gz") as tar:
                for path in sorted(root.rglob("*")):
                    arcname = path.relative_to(root).as_posix()
                    tar.add(path, arcname=arcname, recursive=False, filter=_normalize)
            os.replace(tmp, dest_path)
        finally:
            if os.path.exists(tmp):
                os.remove(tmp)

        logger.info("Created release tarball %s", dest_path)
        return dest_path
