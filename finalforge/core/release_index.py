"""Version Index — issued final versions of one named release.

Backed by ``releases/<name>/index.yml``; each entry is keyed by a random
UUID and carries ``{version: ...}``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from finalforge.core.errors import IndexCorruptionError, VersionConflictError
from finalforge.core.versions_index import VersionsIndex
from finalforge.models.index import VersionIndexEntry
from finalforge.models.versioning import InvalidVersionError, ReleaseVersion

logger = logging.getLogger(__name__)


class ReleaseVersionIndex:
    """Append-only record of versions issued for a release name.

    Parameters
    ----------
    release_dir:
        ``releases/<name>/`` directory.
    lock_timeout:
        Seconds to wait for the index lock on writes.
    """

    def __init__(self, release_dir: Path, lock_timeout: float = 30.0) -> None:
        self._index = VersionsIndex(release_dir, lock_timeout)

    @property
    def index_file(self) -> Path:
        return self._index.index_file

    def entries(self) -> list[VersionIndexEntry]:
        """Issued versions in insertion order. Keys without a version are skipped."""
        return [
            VersionIndexEntry(key=key, version=str(payload["version"]))
            for key, payload in self._index.items()
            if payload.get("version") is not None
        ]

    def version_strings(self) -> list[str]:
        return [entry.version for entry in self.entries()]

    def contains_version_string(self, version: str) -> bool:
        return version in self.version_strings()

    def latest_version(self) -> ReleaseVersion | None:
        """The highest issued version, or None for a release never finalized."""
        versions: list[ReleaseVersion] = []
        for raw in self.version_strings():
            try:
                versions.append(ReleaseVersion.parse(raw))
            except InvalidVersionError as err:
                raise IndexCorruptionError(
                    f"{self.index_file}: unparseable version {raw!r}"
                ) from err
        return max(versions) if versions else None

    @contextmanager
    def locked(self) -> Iterator[ReleaseVersionIndex]:
        with self._index.locked():
            yield self

    def add_version(self, key: str, payload: dict[str, Any]) -> None:
        """Record a newly issued version.

        The membership check and the append happen under one lock, so two
        concurrent finalizes cannot both claim the same version.
        """
        version = str(payload.get("version", ""))
        if not version:
            raise ValueError("release index payload requires a 'version'")
        with self._index.locked():
            if self.contains_version_string(version):
                raise VersionConflictError(
                    f"Release version already exists: {version}"
                )
            self._index.add_version(key, {"version": version})
        logger.info("Recorded release version %s in %s", version, self.index_file)
