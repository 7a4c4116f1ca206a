"""Finalize invocation and repository context models."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, field_validator

from finalforge.models.manifest import ArtifactKind, check_release_name


class FinalizeOptions(BaseModel):
    """Per-invocation options for ``finalize release``.

    Passed once into the orchestrator; never mutated.
    """

    model_config = ConfigDict(frozen=True)

    dry_run: bool = False
    name_override: str | None = None
    version_override: str | None = None

    @field_validator("name_override")
    @classmethod
    def _single_component_name(cls, value: str | None) -> str | None:
        return None if value is None else check_release_name(value)


class RepositoryContext(BaseModel):
    """Where the release repository lives and how it is laid out."""

    model_config = ConfigDict(frozen=True)

    root: Path
    releases_dirname: str = "releases"
    final_builds_dirname: str = ".final_builds"

    @property
    def config_dir(self) -> Path:
        return self.root / "config"

    def release_dir(self, release_name: str) -> Path:
        """``releases/<name>/`` for a release name."""
        return self.root / self.releases_dirname / release_name

    def final_builds_dir(self, kind: ArtifactKind, artifact_name: str) -> Path:
        """``.final_builds/<kind>/<artifact-name>/``."""
        return self.root / self.final_builds_dirname / kind.value / artifact_name

    def manifest_path(self, release_name: str, version: str) -> Path:
        return self.release_dir(release_name) / f"{release_name}-{version}.yml"

    def tarball_path(self, release_name: str, version: str) -> Path:
        return self.release_dir(release_name) / f"{release_name}-{version}.tgz"

    def relative(self, path: Path) -> Path:
        """Express *path* relative to the repository root when possible."""
        try:
            return path.relative_to(self.root)
        except ValueError:
            return path
