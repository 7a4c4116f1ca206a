"""Content-Addressed Artifact Index — ``.final_builds/<kind>/<name>/index.yml``.

Maps an artifact fingerprint to ``{version, sha1, blobstore_id}``. Because the
fingerprint encodes the artifact's content, an existing entry is proof that
the content is already durably stored in the blobstore.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from pydantic import ValidationError

from finalforge.core.errors import IndexCorruptionError
from finalforge.core.versions_index import VersionsIndex
from finalforge.models.index import FinalBuildEntry

logger = logging.getLogger(__name__)


class FinalBuildsIndex:
    """Fingerprint-keyed index of uploaded artifacts for one kind and name.

    ``put`` writes once per fingerprint: an identical re-put is a no-op, a
    differing one raises ``IndexCorruptionError``.

    Parameters
    ----------
    index_dir:
        ``.final_builds/<kind>/<artifact-name>/`` directory.
    lock_timeout:
        Seconds to wait for the index lock.
    """

    def __init__(self, index_dir: Path, lock_timeout: float = 30.0) -> None:
        self._index = VersionsIndex(index_dir, lock_timeout)

    @property
    def index_file(self) -> Path:
        return self._index.index_file

    def get(self, fingerprint: str) -> FinalBuildEntry | None:
        payload = self._index.get(fingerprint)
        if payload is None:
            return None
        try:
            return FinalBuildEntry.model_validate(
                {k: str(v) for k, v in payload.items() if v is not None}
            )
        except ValidationError as err:
            raise IndexCorruptionError(
                f"{self.index_file}: malformed entry for {fingerprint}: {err}"
            ) from err

    def put(self, fingerprint: str, entry: FinalBuildEntry) -> None:
        if not fingerprint:
            raise ValueError("fingerprint must not be empty")
        with self._index.locked():
            existing = self.get(fingerprint)
            if existing is not None and existing != entry:
                raise IndexCorruptionError(
                    f"{self.index_file}: fingerprint {fingerprint} is recorded as "
                    f"{existing.model_dump()} and cannot be re-recorded as "
                    f"{entry.model_dump()}"
                )
            self._index.add_version(fingerprint, entry.payload())

    @contextmanager
    def locked(self) -> Iterator[FinalBuildsIndex]:
        with self._index.locked():
            yield self
