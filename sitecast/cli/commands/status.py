"""``sitecast status SITE RELEASE_ID``: read a release's state."""

from __future__ import annotations

import typer

from sitecast.cli.render import RunRenderer
from sitecast.cli.runtime import console, open_pipeline, run
from sitecast.config import DeployConfig
from sitecast.models.release import ReleaseRecord


def status_cmd(
    site: str = typer.Argument(..., help="Hosting site id."),
    release_id: str = typer.Argument(..., help="Release id returned by deploy."),
    user: str = typer.Option(..., "--user", "-u", help="User whose credentials are used."),
    wait: bool = typer.Option(
        False, "--wait", "-w", help="Poll until the release reports success."
    ),
) -> None:
    """Show the status and public URL of a release."""
    config = DeployConfig()

    async def _status() -> ReleaseRecord:
        async with open_pipeline(config) as pipeline:
            if wait:
                return await pipeline.wait_for_release(user, site, release_id)
            return await pipeline.status(user, site, release_id)

    RunRenderer(console=console).print_release(run(_status()))
