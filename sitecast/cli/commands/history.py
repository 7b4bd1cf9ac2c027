"""``sitecast history [RUN_ID]``: show a run's stage transitions.

A read-only projection over the Run Ledger. Without a run id, lists the
most recent runs.
"""

from __future__ import annotations

import typer

from sitecast.cli.render import RunRenderer
from sitecast.cli.runtime import console
from sitecast.config import DeployConfig
from sitecast.core.run_ledger import LedgerIntegrityError, RunLedger


def history_cmd(
    run_id: str = typer.Argument(None, help="Run id to show; omit to list runs."),
    limit: int = typer.Option(10, "--limit", "-n", help="Runs to list without a run id."),
) -> None:
    """Show the recorded stage history of a deployment run."""
    config = DeployConfig()
    if not config.ledger_path.exists():
        console.print(f"[bold red]Ledger not found:[/bold red] {config.ledger_path}")
        console.print("[dim]Deploy something first with: sitecast deploy[/dim]")
        raise typer.Exit(code=1)

    ledger = RunLedger(config.ledger_path)
    if run_id is None:
        run_ids = ledger.get_all_run_ids()
        if not run_ids:
            console.print("[dim]No runs recorded.[/dim]")
            return
        console.print("[bold]Recent runs:[/bold]")
        for rid in run_ids[:limit]:
            console.print(f"  [cyan]{rid}[/cyan]")
        return

    entries = ledger.get_run_entries(run_id)
    if not entries:
        console.print(f"[bold red]Run not found:[/bold red] {run_id}")
        raise typer.Exit(code=1)

    renderer = RunRenderer(console=console)
    try:
        valid = ledger.verify_chain(run_id)
    except LedgerIntegrityError as exc:
        console.print(f"[bold red]Chain verification failed:[/bold red] {exc}")
        valid = False
    renderer.print_history(run_id, entries, chain_valid=valid)
    renderer.print_chain_verification(run_id, valid)
