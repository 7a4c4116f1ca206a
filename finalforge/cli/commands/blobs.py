"""``finalforge blobs status`` — show which working-tree blobs need uploading."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from finalforge.config import settings
from finalforge.core.blob_manager import LocalBlobManager
from finalforge.core.errors import FinalizeError
from finalforge.core.release_repo import ReleaseRepository
from finalforge.models.config import RepositoryContext

console = Console()


def blobs_status_cmd(
    repo_dir: Path = typer.Option(
        Path("."),
        "--dir",
        "-d",
        help="Release repository directory.",
    ),
) -> None:
    """Print the blob status table; exit 1 if blobs still need uploading."""
    repository = ReleaseRepository(RepositoryContext(root=repo_dir.resolve()))
    try:
        repository.check_release_dir()
        store = repository.blobstore(settings.blobstore_path)
        manager = LocalBlobManager(repository.root, store, console=console)
        manager.print_status()
        dirty = manager.is_dirty()
    except FinalizeError as exc:
        console.print(
            f"[bold red]Blob status failed:[/bold red] {escape(str(exc))}", soft_wrap=True
        )
        raise typer.Exit(code=1)

    if dirty:
        raise typer.Exit(code=1)
