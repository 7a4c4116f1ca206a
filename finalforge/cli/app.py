"""Main Typer application — imports and registers all CLI commands.

Entry point: ``finalforge`` (configured via pyproject.toml scripts).

Commands: finalize release, blobs status.
"""

from __future__ import annotations

import typer

from finalforge.cli.commands.blobs import blobs_status_cmd
from finalforge.cli.commands.finalize import finalize_release_cmd
from finalforge.config import settings
from finalforge.logging_config import setup_logging

app = typer.Typer(
    name="finalforge",
    help="Finalforge: turn dev release tarballs into final, uploaded releases.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

finalize_app = typer.Typer(help="Finalize development builds.", no_args_is_help=True)
blobs_app = typer.Typer(help="Inspect working-tree blobs.", no_args_is_help=True)

# Register subcommands
finalize_app.command(
    name="release",
    help="Create final release from dev release tarball "
    "(assumes current directory to be a release repository).",
)(finalize_release_cmd)
blobs_app.command(name="status", help="Show blobs that need uploading.")(blobs_status_cmd)

app.add_typer(finalize_app, name="finalize")
app.add_typer(blobs_app, name="blobs")


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None,
        "--log-level",
        help="Log level (defaults to FINALFORGE_LOG_LEVEL or INFO).",
    ),
) -> None:
    """Configure logging before any command runs."""
    setup_logging(log_level or settings.log_level)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
