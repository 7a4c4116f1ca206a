"""Index entry models — release version entries and final build entries."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

from finalforge.models.manifest import ArtifactKind


class VersionIndexEntry(BaseModel):
    """One issued release version. Keyed by a random UUID, append-only."""

    model_config = ConfigDict(frozen=True)

    key: str
    version: str

    def payload(self) -> dict[str, Any]:
        return {"version": self.version}


class FinalBuildEntry(BaseModel):
    """What a fingerprint maps to in ``.final_builds/<kind>/<name>/index.yml``.

    Immutable once written: the same fingerprint must always map to the
    same upload.
    """

    model_config = ConfigDict(frozen=True)

    version: str
    sha1: str
    blobstore_id: str

    def payload(self) -> dict[str, Any]:
        return self.model_dump()


class StoredArtifactRef(BaseModel):
    """Result of a deduplicating upload."""

    model_config = ConfigDict(frozen=True)

    kind: ArtifactKind
    name: str
    fingerprint: str
    version: str
    sha1: str
    blobstore_id: str
    uploaded: bool  # False when the fingerprint was already in the index
