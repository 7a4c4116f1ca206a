"""Version allocation for final releases.

Allocation is a pure read-and-compute over the Version Index; nothing is
recorded until the orchestrator commits.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from finalforge.core.errors import VersionConflictError
from finalforge.core.interfaces import VersionIndex
from finalforge.models.versioning import ReleaseVersion

logger = logging.getLogger(__name__)

INITIAL_VERSION = ReleaseVersion.parse("0")


class VersionAllocator:
    """Computes the final version to apply to a release.

    Parameters
    ----------
    index:
        Version Index of the final release name.
    manifest_exists:
        Optional predicate telling whether ``<name>-<version>.yml`` is
        already present in the release directory. A version is taken if it
        is either indexed or has a manifest on disk.
    """

    def __init__(
        self,
        index: VersionIndex,
        manifest_exists: Callable[[str], bool] | None = None,
    ) -> None:
        self._index = index
        self._manifest_exists = manifest_exists or (lambda version: False)

    @property
    def index(self) -> VersionIndex:
        return self._index

    def next_version(self) -> ReleaseVersion:
        """Latest issued version (implicitly ``0``) with its release counter bumped."""
        latest = self._index.latest_version() or INITIAL_VERSION
        return latest.increment_release()

    def is_taken(self, version: str) -> bool:
        return self._index.contains_version_string(version) or self._manifest_exists(version)

    def check_free(self, version: str) -> None:
        if self.is_taken(version):
            raise VersionConflictError(f"Release version already exists: {version}")

    def allocate(self, requested: str | None = None) -> str:
        """Return the version string to finalize with.

        Raises
        ------
        VersionConflictError
            If the requested (or computed) version was already issued.
        InvalidVersionError
            If the requested version string cannot be parsed.
        """
        if requested is not None:
            version = requested.strip()
            ReleaseVersion.parse(version)
        else:
            version = str(self.next_version())

        self.check_free(version)
        logger.debug("Allocated release version %s", version)
        return version


def manifest_file_predicate(release_dir: Path, release_name: str) -> Callable[[str], bool]:
    """Predicate for ``VersionAllocator``: does ``<name>-<version>.yml`` exist?"""

    def _exists(version: str) -> bool:
        return (release_dir / f"{release_name}-{version}.yml").exists()

    return _exists
