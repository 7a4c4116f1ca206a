"""``finalforge finalize release TARBALL`` — create a final release from a dev tarball.

Assumes the current directory (or ``--dir``) is a release repository.
Allocates the next final version (or uses ``--version``), checks that all
working-tree blobs are uploaded, then writes the final manifest and tarball
under ``releases/<name>/`` and uploads packages, jobs and license to the
blobstore, skipping anything already uploaded.
"""

from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from finalforge.config import settings
from finalforge.core.blob_manager import LocalBlobManager
from finalforge.core.errors import FinalizeError
from finalforge.core.orchestrator import FinalizeOrchestrator
from finalforge.core.release_repo import ReleaseRepository
from finalforge.core.release_tarball import ReleaseTarball
from finalforge.models.config import FinalizeOptions, RepositoryContext
from finalforge.models.reports import FinalizeResult
from finalforge.models.versioning import InvalidVersionError

console = Console()


def _human_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f}{unit}" if unit == "B" else f"{value:.1f}{unit}"
        value /= 1024
    return f"{size}B"


def finalize_release_cmd(
    tarball_path: Path = typer.Argument(
        ...,
        help="Path to the dev release tarball.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Stop before writing the release manifest.",
    ),
    name: str = typer.Option(
        None,
        "--name",
        help="Specify a custom release name.",
    ),
    version: str = typer.Option(
        None,
        "--version",
        help="Specify a custom version number (ex: 1.0.0 or 1.0-beta.2+dev.10).",
    ),
    repo_dir: Path = typer.Option(
        Path("."),
        "--dir",
        "-d",
        help="Release repository directory.",
    ),
) -> None:
    """Create a final release from a dev release tarball."""
    context = RepositoryContext(
        root=repo_dir.resolve(),
        releases_dirname=settings.releases_dirname,
        final_builds_dirname=settings.final_builds_dirname,
    )
    repository = ReleaseRepository(context, lock_timeout=settings.lock_timeout_seconds)
    tarball = ReleaseTarball(tarball_path)

    try:
        options = FinalizeOptions(
            dry_run=dry_run, name_override=name, version_override=version
        )
        repository.check_release_dir()
        store = repository.blobstore(settings.blobstore_path)
        orchestrator = FinalizeOrchestrator(
            tarball,
            repository=repository,
            store=store,
            blob_manager=LocalBlobManager(context.root, store, console=console),
            options=options,
            settings=settings,
            progress=console.print,
        )
        result = orchestrator.finalize()
    except (FinalizeError, InvalidVersionError) as exc:
        console.print(
            f"[bold red]Finalize failed:[/bold red] {escape(str(exc))}", soft_wrap=True
        )
        raise typer.Exit(code=1)
    except ValidationError as exc:
        for error in exc.errors():
            console.print(
                f"[bold red]Finalize failed:[/bold red] {escape(error['msg'])}",
                soft_wrap=True,
            )
        raise typer.Exit(code=1)
    finally:
        tarball.cleanup()

    _print_result(result, context)


def _print_result(result: FinalizeResult, context: RepositoryContext) -> None:
    if result.dry_run:
        console.print(
            "[bold yellow]Dry run complete.[/bold yellow] Nothing was written."
        )
        return

    lines = [
        "[bold green]Final release created![/bold green]",
        "",
        f"[bold]Name:[/bold]     {result.final_name}",
        f"[bold]Version:[/bold]  {result.final_version}",
        f"[bold]Manifest:[/bold] {context.relative(result.manifest_path)}",
        f"[bold]Tarball:[/bold]  {context.relative(result.tarball_path)} "
        f"({_human_size(result.tarball_size)})",
        "",
        f"[dim]{result.uploaded_count} artifact(s) uploaded, "
        f"{result.deduplicated_count} already in blobstore.[/dim]",
    ]
    console.print()
    console.print(
        Panel(
            "\n".join(lines),
            title="[bold]Finalize Release[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )
