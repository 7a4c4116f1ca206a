"""Finalforge data models — all Pydantic v2, all frozen (immutable)."""

from finalforge.models.config import FinalizeOptions, RepositoryContext
from finalforge.models.index import FinalBuildEntry, StoredArtifactRef, VersionIndexEntry
from finalforge.models.manifest import Artifact, ArtifactKind, ReleaseManifest
from finalforge.models.reports import BlobStatus, FinalizeResult
from finalforge.models.stages import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    FinalizeState,
    FinalizeTransition,
)
from finalforge.models.versioning import InvalidVersionError, ReleaseVersion

__all__ = [
    # manifest
    "Artifact",
    "ArtifactKind",
    "ReleaseManifest",
    # versioning
    "ReleaseVersion",
    "InvalidVersionError",
    # index
    "VersionIndexEntry",
    "FinalBuildEntry",
    "StoredArtifactRef",
    # stages
    "FinalizeState",
    "FinalizeTransition",
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    # config
    "FinalizeOptions",
    "RepositoryContext",
    # reports
    "FinalizeResult",
    "BlobStatus",
]
