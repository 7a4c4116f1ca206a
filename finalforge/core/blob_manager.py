"""Working-tree large-file tracker.

Layout inside a release repository:

- ``config/blobs.yml`` — ``<path>: {object_id, sha, size}`` for every blob
  that has been uploaded to the blobstore.
- ``blobs/<path>`` — local copies of blobs.

A file under ``blobs/`` that is not in ``blobs.yml`` (or has no
``object_id`` yet) is *new*; a tracked file whose SHA-1 changed locally is
*updated*. Either makes the working tree dirty.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from rich.console import Console
from rich.table import Table

from finalforge.core.blobstore import BlobstoreIntegrityError, LocalBlobstore
from finalforge.core.errors import BlobstoreConfigError
from finalforge.core.file_lock import atomic_write_bytes
from finalforge.core.hasher import sha1_file, sha1_hex
from finalforge.models.reports import BlobStatus

logger = logging.getLogger(__name__)

BLOBS_INDEX = Path("config") / "blobs.yml"
BLOBS_DIR = Path("blobs")


class LocalBlobManager:
    """Tracks large files of a release working tree against the blobstore.

    Parameters
    ----------
    root:
        Release repository root.
    blobstore:
        Where tracked blobs live; used by :meth:`sync` to fetch missing ones.
    console:
        Rich console for :meth:`print_status`.
    """

    def __init__(
        self,
        root: Path,
        blobstore: LocalBlobstore | None = None,
        *,
        console: Console | None = None,
    ) -> None:
        self._root = Path(root)
        self._blobstore = blobstore
        self._console = console or Console()

    @property
    def blobs_dir(self) -> Path:
        return self._root / BLOBS_DIR

    def _load_index(self) -> dict[str, dict[str, Any]]:
        path = self._root / BLOBS_INDEX
        if not path.exists():
            return {}
        try:
            document = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as err:
            raise BlobstoreConfigError(f"Invalid YAML in {path}: {err}") from err
        if not isinstance(document, dict):
            raise BlobstoreConfigError(f"{path} must contain a mapping")
        return {str(k): (v or {}) for k, v in document.items()}

    def _local_files(self) -> list[str]:
        if not self.blobs_dir.is_dir():
            return []
        return sorted(
            p.relative_to(self.blobs_dir).as_posix()
            for p in self.blobs_dir.rglob("*")
            if p.is_file() and not p.name.startswith(".")
        )

    # ------------------------------------------------------------------
    # Sync and status
    # ------------------------------------------------------------------

    def sync(self) -> None:
        """Fetch tracked blobs that are missing from the working tree."""
        if self._blobstore is None:
            return
        for blob_path, entry in self._load_index().items():
            object_id = entry.get("object_id")
            local = self.blobs_dir / blob_path
            if not object_id or local.exists() or not self._blobstore.exists(str(object_id)):
                continue

            data = self._blobstore.get(str(object_id))
            expected = str(entry.get("sha", ""))
            if expected and sha1_hex(data) != expected:
                raise BlobstoreIntegrityError(
                    f"Blob {blob_path} ({object_id}) does not match sha1 {expected}"
                )
            atomic_write_bytes(local, data)
            logger.info("Fetched blob %s", blob_path)

    def status(self) -> BlobStatus:
        index = self._load_index()
        local_files = set(self._local_files())

        new_blobs = sorted(
            path for path in local_files
            if path not in index or not index[path].get("object_id")
        )
        updated_blobs = sorted(
            path for path, entry in index.items()
            if entry.get("object_id")
            and path in local_files
            and sha1_file(self.blobs_dir / path) != str(entry.get("sha", ""))
        )
        missing_blobs = sorted(
            path for path in index if path not in local_files
        )
        return BlobStatus(
            new_blobs=new_blobs,
            updated_blobs=updated_blobs,
            missing_blobs=missing_blobs,
        )

    def is_dirty(self) -> bool:
        return self.status().dirty

    def blobs_to_upload(self) -> list[str]:
        return self.status().blobs_to_upload

    def print_status(self) -> None:
        status = self.status()
        if not (status.dirty or status.missing_blobs):
            self._console.print("[green]All blobs are in sync.[/green]")
            return

        table = Table(title="Blob Status")
        table.add_column("Blob", style="cyan")
        table.add_column("State")
        for path in status.new_blobs:
            table.add_row(path, "[yellow]new[/yellow]")
        for path in status.updated_blobs:
            table.add_row(path, "[yellow]updated[/yellow]")
        for path in status.missing_blobs:
            table.add_row(path, "[red]missing[/red]")
        self._console.print(table)
