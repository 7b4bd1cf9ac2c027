"""``sitecast deploy OWNER/REPO --site SITE``: run a full deployment.

Fetches the repository snapshot, builds it when needed, uploads only the
files the hosting backend lacks, finalizes the version and releases it.
Every stage transition is recorded in the Run Ledger.
"""

from __future__ import annotations

import typer

from sitecast.cli.render import RunRenderer
from sitecast.cli.runtime import console, open_pipeline, run
from sitecast.config import DeployConfig
from sitecast.models.release import ReleaseRecord
from sitecast.models.result import DeploymentResult
from sitecast.models.source import HostKind, SourceReference


def deploy_cmd(
    repository: str = typer.Argument(..., help="Repository as OWNER/REPO."),
    site: str = typer.Option(..., "--site", "-s", help="Hosting site id to publish to."),
    user: str = typer.Option(..., "--user", "-u", help="User whose credentials are used."),
    ref: str = typer.Option("main", "--ref", "-r", help="Branch, tag or commit to deploy."),
    host: HostKind = typer.Option(HostKind.GITHUB, "--host", help="Source-control host."),
    wait: bool = typer.Option(
        False, "--wait", "-w", help="Poll the release until it reports success."
    ),
) -> None:
    """Deploy a repository snapshot to a hosting site."""
    try:
        source = SourceReference.parse(repository, host_kind=host, ref=ref)
    except ValueError as exc:
        console.print(f"[bold red]Invalid repository:[/bold red] {exc}")
        raise typer.Exit(code=2)

    config = DeployConfig()
    renderer = RunRenderer(console=console)

    async def _deploy() -> tuple[DeploymentResult, ReleaseRecord | None]:
        async with open_pipeline(config) as pipeline:
            result = await pipeline.deploy(user, source, site)
            final = None
            if wait:
                final = await pipeline.wait_for_release(user, site, result.release.release_id)
            return result, final

    console.print(f"[bold cyan]Deploying {source.slug}@{ref} to {site}...[/bold cyan]")
    result, final = run(_deploy())
    renderer.print_result(result)
    if final is not None:
        renderer.print_release(final)

    # Print the run_id plainly for scripting
    console.print(f"[bold]{result.run_id}[/bold]")
