"""Finalforge: finalize dev releases into immutable, uploaded final releases.

  - Version allocation from an append-only per-release version index
  - Content-addressed final builds index: one upload per fingerprint
  - Blob sync gate: no final release referencing unuploaded blobs
  - Dry-run aware, ordered commit: manifest, index, tarball, uploads, pointer
"""

__version__ = "0.1.0"
__description__ = "Finalize dev release tarballs into immutable, uploaded final releases"

from finalforge.core.orchestrator import FinalizeOrchestrator
from finalforge.cli.app import app as cli

__all__ = ["FinalizeOrchestrator", "cli", "__version__"]
