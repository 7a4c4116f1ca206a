"""Tests for FinalizeSettings and logging setup."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from finalforge.config import FinalizeSettings
from finalforge.logging_config import setup_logging


class TestFinalizeSettings:
    def test_defaults(self, monkeypatch):
        for var in ("FINALFORGE_UPLOAD_WORKERS", "FINALFORGE_BLOBSTORE_PATH"):
            monkeypatch.delenv(var, raising=False)
        s = FinalizeSettings(_env_file=None)
        assert s.upload_workers == 4
        assert s.releases_dirname == "releases"
        assert s.final_builds_dirname == ".final_builds"
        assert s.blobstore_path is None

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("FINALFORGE_UPLOAD_WORKERS", "8")
        monkeypatch.setenv("FINALFORGE_BLOBSTORE_PATH", "/srv/blobstore")
        s = FinalizeSettings(_env_file=None)
        assert s.upload_workers == 8
        assert s.blobstore_path == Path("/srv/blobstore")

    def test_workers_must_be_positive(self):
        with pytest.raises(ValidationError):
            FinalizeSettings(upload_workers=0, _env_file=None)


class TestSetupLogging:
    def test_idempotent(self):
        setup_logging("DEBUG")
        setup_logging("WARNING")
        logger = logging.getLogger("finalforge")
        assert logger.level == logging.WARNING
        assert len([h for h in logger.handlers if h.get_name() == "finalforge-rich"]) == 1

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            setup_logging("CHATTY")
