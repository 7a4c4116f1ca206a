"""Append-only, YAML-backed ``key -> payload`` index.

Storage layout: {index_dir}/index.yml

    builds:
      <key>:
        <payload fields>
    format-version: '2'

There is no update or delete. Re-adding an identical payload under an
existing key is a no-op; a different payload under an existing key raises
``IndexCorruptionError``. Writes hold an ``IndexLock`` and replace the file
atomically; reads take no lock.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import yaml

from finalforge.core.errors import IndexCorruptionError
from finalforge.core.file_lock import IndexLock, atomic_write_text

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.yml"
FORMAT_VERSION = "2"


class VersionsIndex:
    """Durable append-only index stored in one directory.

    The directory is created lazily on first write, so merely reading
    (or constructing) an index never touches the filesystem.

    Parameters
    ----------
    index_dir:
        Directory holding ``index.yml``.
    lock_timeout:
        Seconds to wait for the single-writer lock.
    """

    def __init__(self, index_dir: Path, lock_timeout: float = 30.0) -> None:
        self._dir = Path(index_dir)
        self._lock = IndexLock(self._dir / f"{INDEX_FILENAME}.lock", lock_timeout)

    @property
    def index_file(self) -> Path:
        return self._dir / INDEX_FILENAME

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def _load(self) -> dict[str, dict[str, Any]]:
        if not self.index_file.exists():
            return {}
        try:
            document = yaml.safe_load(self.index_file.read_text(encoding="utf-8"))
        except yaml.YAMLError as err:
            raise IndexCorruptionError(f"Invalid YAML in {self.index_file}: {err}") from err

        if document is None:
            return {}
        if not isinstance(document, dict):
            raise IndexCorruptionError(f"{self.index_file} must contain a mapping")

        builds = document.get("builds") or {}
        if not isinstance(builds, dict) or not all(
            isinstance(payload, dict) for payload in builds.values()
        ):
            raise IndexCorruptionError(
                f"{self.index_file}: 'builds' must map keys to mappings"
            )
        return {str(key): payload for key, payload in builds.items()}

    def get(self, key: str) -> dict[str, Any] | None:
        """Return the payload stored under *key*, or None."""
        payload = self._load().get(key)
        return dict(payload) if payload is not None else None

    def items(self) -> list[tuple[str, dict[str, Any]]]:
        """All entries in insertion order."""
        return [(key, dict(payload)) for key, payload in self._load().items()]

    # ------------------------------------------------------------------
    # Append
    # ------------------------------------------------------------------

    @contextmanager
    def locked(self) -> Iterator[VersionsIndex]:
        """Hold the single-writer lock (re-entrant for this thread)."""
        with self._lock.hold():
            yield self

    def add_version(self, key: str, payload: dict[str, Any]) -> None:
        """Append *payload* under *key*. Identical re-adds are no-ops."""
        payload = {name: _stringify(value) for name, value in payload.items()}
        with self.locked():
            builds = self._load()
            existing = builds.get(key)
            if existing is not None:
                if {k: _stringify(v) for k, v in existing.items()} == payload:
                    logger.debug("Index %s already has %s", self.index_file, key)
                    return
                raise IndexCorruptionError(
                    f"{self.index_file}: refusing to overwrite entry {key!r} "
                    f"({existing!r}) with {payload!r}"
                )
            builds[key] = payload
            self._write(builds)
            logger.debug("Index %s: added %s", self.index_file, key)

    def _write(self, builds: dict[str, dict[str, Any]]) -> None:
        document = {"builds": builds, "format-version": FORMAT_VERSION}
        atomic_write_text(
            self.index_file,
            yaml.safe_dump(document, default_flow_style=False, sort_keys=True),
        )


def _stringify(value: Any) -> Any:
    return str(value) if isinstance(value, (int, float)) else value
