"""``sitecast release SITE VERSION``: re-issue a release.

Makes an already finalized version live again. This is how a run that
finalized but failed to release is completed, and how a site is rolled
back to an earlier version. ``VERSION`` may be a version handle
(``sites/<site>/versions/<id>``) or, with ``--from-run``, a run id whose
version handle is looked up in the Run Ledger.
"""

from __future__ import annotations

import typer

from sitecast.cli.render import RunRenderer
from sitecast.cli.runtime import console, open_pipeline, run
from sitecast.config import DeployConfig
from sitecast.core.run_ledger import RunLedger
from sitecast.models.release import ReleaseRecord


def release_cmd(
    site: str = typer.Argument(..., help="Hosting site id."),
    version: str = typer.Argument(..., help="Finalized version handle, or a run id."),
    user: str = typer.Option(..., "--user", "-u", help="User whose credentials are used."),
    from_run: bool = typer.Option(
        False, "--from-run", help="Treat VERSION as a run id recorded in the ledger."
    ),
) -> None:
    """Release a finalized version of a site."""
    config = DeployConfig()

    version_handle = version
    if from_run:
        if not config.ledger_path.exists():
            console.print(f"[bold red]Ledger not found:[/bold red] {config.ledger_path}")
            raise typer.Exit(code=1)
        version_handle = RunLedger(config.ledger_path).find_detail(version, "version_handle")
        if not version_handle:
            console.print(f"[bold red]No version handle recorded for run:[/bold red] {version}")
            raise typer.Exit(code=1)

    async def _release() -> ReleaseRecord:
        async with open_pipeline(config) as pipeline:
            return await pipeline.rerelease(user, site, version_handle)

    console.print(f"[bold cyan]Releasing {version_handle} on {site}...[/bold cyan]")
    RunRenderer(console=console).print_release(run(_release()))
