"""Finalize outcome and blob status reports."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict

from finalforge.models.index import StoredArtifactRef


class FinalizeResult(BaseModel):
    """What ``finalize release`` did (or would do, for a dry run)."""

    model_config = ConfigDict(frozen=True)

    dev_name: str
    dev_version: str
    final_name: str
    final_version: str
    dry_run: bool
    manifest_path: Path | None = None
    tarball_path: Path | None = None
    tarball_size: int = 0
    artifacts: list[StoredArtifactRef] = []

    @property
    def uploaded_count(self) -> int:
        return sum(1 for ref in self.artifacts if ref.uploaded)

    @property
    def deduplicated_count(self) -> int:
        return sum(1 for ref in self.artifacts if not ref.uploaded)


class BlobStatus(BaseModel):
    """Working-tree large-file state as seen by the blob manager.

    ``new_blobs`` are untracked files under ``blobs/``; ``updated_blobs``
    are tracked files whose content changed locally; ``missing_blobs`` are
    tracked entries with no local copy and no blobstore object to fetch.
    """

    model_config = ConfigDict(frozen=True)

    new_blobs: list[str] = []
    updated_blobs: list[str] = []
    missing_blobs: list[str] = []

    @property
    def dirty(self) -> bool:
        return bool(self.new_blobs or self.updated_blobs)

    @property
    def blobs_to_upload(self) -> list[str]:
        return sorted(self.new_blobs + self.updated_blobs)
