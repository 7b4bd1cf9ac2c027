"""Main Typer application: configures logging and registers all commands.

Entry point: ``sitecast`` (configured via pyproject.toml project.scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from sitecast.cli.commands.credentials import credentials_cmd
from sitecast.cli.commands.deploy import deploy_cmd
from sitecast.cli.commands.history import history_cmd
from sitecast.cli.commands.local import detect_cmd, manifest_cmd
from sitecast.cli.commands.release import release_cmd
from sitecast.cli.commands.status import status_cmd
from sitecast.cli.runtime import console
from sitecast.config import DeployConfig

app = typer.Typer(
    name="sitecast",
    help="Sitecast: deploy a GitHub or GitLab repository to static hosting.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="deploy", help="Fetch, build and publish a repository.")(deploy_cmd)
app.command(name="status", help="Show the status of a release.")(status_cmd)
app.command(name="release", help="Re-issue a release of a finalized version.")(release_cmd)
app.command(name="detect", help="Classify a local project tree.")(detect_cmd)
app.command(name="manifest", help="Compute the content manifest of a directory.")(manifest_cmd)
app.command(name="credentials", help="Store delegated tokens for a user.")(credentials_cmd)
app.command(name="history", help="Show the ledger history of a run.")(history_cmd)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Install Rich logging at the configured level."""
    level = "DEBUG" if verbose else DeployConfig().log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
        force=True,
    )


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
