"""Release repository — layout, repo-local config, and index factories.

Repo-local config files (YAML):

- ``config/final.yml``: ``name`` and ``blobstore: {provider, options}``.
- ``config/dev.yml``: ``latest_release_filename`` and other dev settings.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from finalforge.core.blobstore import LocalBlobstore
from finalforge.core.errors import BlobstoreConfigError, NotReleaseDirectoryError
from finalforge.core.file_lock import atomic_write_text
from finalforge.core.final_builds import FinalBuildsIndex
from finalforge.core.release_index import ReleaseVersionIndex
from finalforge.models.config import RepositoryContext
from finalforge.models.manifest import ArtifactKind

logger = logging.getLogger(__name__)

REQUIRED_DIRS = ("config", "jobs", "packages", "src")
SUPPORTED_PROVIDERS = ("local",)


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        document = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as err:
        raise BlobstoreConfigError(f"Invalid YAML in {path}: {err}") from err
    if document is None:
        return {}
    if not isinstance(document, dict):
        raise BlobstoreConfigError(f"{path} must contain a mapping")
    return document


class ReleaseRepository:
    """A release repository rooted at ``context.root``.

    Parameters
    ----------
    context:
        Repository root and directory names.
    lock_timeout:
        Seconds to wait for index locks.
    """

    def __init__(self, context: RepositoryContext, *, lock_timeout: float = 30.0) -> None:
        self.context = context
        self._lock_timeout = lock_timeout
        self._dev_config: dict[str, Any] | None = None

    @property
    def root(self) -> Path:
        return self.context.root

    def is_release_dir(self) -> bool:
        return all((self.root / name).is_dir() for name in REQUIRED_DIRS)

    def check_release_dir(self) -> None:
        if not self.is_release_dir():
            raise NotReleaseDirectoryError(
                f"{self.root} is not a release repository "
                f"(expected directories: {', '.join(REQUIRED_DIRS)})"
            )

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------

    @property
    def final_config_path(self) -> Path:
        return self.context.config_dir / "final.yml"

    @property
    def dev_config_path(self) -> Path:
        return self.context.config_dir / "dev.yml"

    def final_config(self) -> dict[str, Any]:
        return _read_yaml(self.final_config_path)

    def dev_config(self) -> dict[str, Any]:
        if self._dev_config is None:
            self._dev_config = _read_yaml(self.dev_config_path)
        return self._dev_config

    @property
    def latest_release_filename(self) -> str | None:
        value = self.dev_config().get("latest_release_filename")
        return str(value) if value else None

    @latest_release_filename.setter
    def latest_release_filename(self, value: str) -> None:
        self.dev_config()["latest_release_filename"] = value

    def save_config(self) -> None:
        """Persist ``config/dev.yml``, keeping keys this tool does not own."""
        document = _read_yaml(self.dev_config_path)
        document.update(self.dev_config())
        atomic_write_text(
            self.dev_config_path,
            yaml.safe_dump(document, default_flow_style=False, sort_keys=True),
        )
        self._dev_config = document
        logger.debug("Saved %s", self.dev_config_path)

    def blobstore(self, override_path: Path | None = None) -> LocalBlobstore:
        """Build the blobstore client configured in ``config/final.yml``.

        *override_path* (e.g. from settings) replaces the configured path.
        """
        if override_path is not None:
            return LocalBlobstore(override_path)

        blobstore_config = self.final_config().get("blobstore")
        if not isinstance(blobstore_config, dict):
            raise BlobstoreConfigError(
                f"Missing blobstore configuration in {self.final_config_path}"
            )

        provider = blobstore_config.get("provider")
        if provider not in SUPPORTED_PROVIDERS:
            raise BlobstoreConfigError(
                f"Unsupported blobstore provider {provider!r} "
                f"(supported: {', '.join(SUPPORTED_PROVIDERS)})"
            )

        options = blobstore_config.get("options") or {}
        path = options.get("blobstore_path")
        if not path:
            raise BlobstoreConfigError(
                "Local blobstore requires options.blobstore_path"
            )
        path = Path(path)
        return LocalBlobstore(path if path.is_absolute() else self.root / path)

    # ------------------------------------------------------------------
    # Indices
    # ------------------------------------------------------------------

    def version_index(self, release_name: str) -> ReleaseVersionIndex:
        return ReleaseVersionIndex(
            self.context.release_dir(release_name), self._lock_timeout
        )

    def final_builds_index(self, kind: ArtifactKind, artifact_name: str) -> FinalBuildsIndex:
        return FinalBuildsIndex(
            self.context.final_builds_dir(kind, artifact_name), self._lock_timeout
        )
