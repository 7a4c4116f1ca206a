"""Release manifest models — the document stored as ``release.MF``.

A manifest is an immutable snapshot. Finalization rewrites the raw YAML
document so that keys unknown to these models survive verbatim.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def check_release_name(name: str) -> str:
    """Reject release names that are not a single path component."""
    if not name.strip() or name in (".", "..") or "/" in name or "\\" in name:
        raise ValueError(f"Invalid release name {name!r}: must be a single path component")
    return name


class ArtifactKind(str, Enum):
    """Kinds of build artifacts tracked in ``.final_builds``."""

    PACKAGES = "packages"
    JOBS = "jobs"
    LICENSE = "license"


class Artifact(BaseModel):
    """A package, job or license entry of a release manifest.

    ``fingerprint`` is the dedup key; ``sha1`` checks the artifact tarball.
    An empty fingerprint is tolerated here and rejected by the uploader, so
    that old tarballs still load and fail with a precise message.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    name: str
    version: str
    fingerprint: str = ""
    sha1: str = ""
    dependencies: list[str] = []

    @field_validator("version", "fingerprint", "sha1", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> Any:
        # YAML turns unquoted digests such as 1234 into ints.
        if value is None:
            return ""
        return str(value) if isinstance(value, (int, float)) else value


class ReleaseManifest(BaseModel):
    """A release manifest. Unknown keys (``commit_hash`` …) are preserved."""

    model_config = ConfigDict(frozen=True, extra="allow")

    name: str
    version: str
    packages: list[Artifact] = Field(default_factory=list)
    jobs: list[Artifact] = Field(default_factory=list)
    license: Artifact | None = None

    @field_validator("name")
    @classmethod
    def _single_component_name(cls, value: str) -> str:
        return check_release_name(value)

    @field_validator("version", mode="before")
    @classmethod
    def _coerce_version(cls, value: Any) -> Any:
        return str(value) if isinstance(value, (int, float)) else value

    @field_validator("packages", "jobs", mode="before")
    @classmethod
    def _null_to_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> ReleaseManifest:
        """Build a manifest from a parsed YAML mapping."""
        return cls.model_validate(document)

    def artifacts(self) -> list[tuple[ArtifactKind, Artifact]]:
        """All artifacts in upload order: packages, then jobs, then license."""
        ordered: list[tuple[ArtifactKind, Artifact]] = [
            (ArtifactKind.PACKAGES, package) for package in self.packages
        ]
        ordered.extend((ArtifactKind.JOBS, job) for job in self.jobs)
        if self.license is not None:
            ordered.append((ArtifactKind.LICENSE, self.license))
        return ordered
