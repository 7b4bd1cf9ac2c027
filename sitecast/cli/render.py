"""Rich terminal rendering for deployment runs and releases.

Color scheme
------------
- green     : PASSED / SUCCESS
- red       : FAILED
- yellow    : RUNNING / IN_PROGRESS
- dim       : NOT_STARTED
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from sitecast.models.ledger import LedgerEntry
from sitecast.models.release import ReleaseRecord, ReleaseStatus
from sitecast.models.result import DeploymentResult
from sitecast.models.stages import STAGE_ORDER, StageState


# ---------------------------------------------------------------------------
# State -> Rich markup
# ---------------------------------------------------------------------------

_STATE_ICONS: dict[StageState, str] = {
    StageState.PASSED: "[green]PASSED[/green]",
    StageState.FAILED: "[bold red]FAILED[/bold red]",
    StageState.RUNNING: "[yellow]RUNNING[/yellow]",
    StageState.NOT_STARTED: "[dim]NOT STARTED[/dim]",
}

_RELEASE_ICONS: dict[ReleaseStatus, str] = {
    ReleaseStatus.SUCCESS: "[green]SUCCESS[/green]",
    ReleaseStatus.IN_PROGRESS: "[yellow]IN PROGRESS[/yellow]",
    ReleaseStatus.FAILED: "[bold red]FAILED[/bold red]",
}


def stage_states(entries: list[LedgerEntry]) -> dict[str, tuple[StageState, LedgerEntry | None]]:
    """Latest state of every stage, replayed from ledger entries."""
    states: dict[str, tuple[StageState, LedgerEntry | None]] = {
        stage.value: (StageState.NOT_STARTED, None) for stage in STAGE_ORDER
    }
    for entry in entries:
        target = entry.state_transition.rsplit("->", 1)[-1]
        states[entry.stage_id] = (StageState(target), entry)
    return states


def _format_details(entry: LedgerEntry | None) -> str:
    if entry is None or not entry.details:
        return "[dim]-[/dim]"
    parts = []
    for key, value in entry.details.items():
        style = "red" if key == "error" else "dim"
        parts.append(f"[{style}]{key}={escape(str(value))}[/{style}]")
    return " | ".join(parts)


class RunRenderer:
    """Renders runs and releases as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def render_history(
        self, run_id: str, entries: list[LedgerEntry], *, chain_valid: bool
    ) -> Panel:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("#", style="dim", width=3, justify="right")
        table.add_column("Stage", min_width=10)
        table.add_column("State", min_width=12, justify="center")
        table.add_column("At", width=10)
        table.add_column("Details", min_width=20)

        for i, (stage_id, (state, entry)) in enumerate(stage_states(entries).items()):
            at = entry.timestamp_utc.strftime("%H:%M:%S") if entry else ""
            table.add_row(
                str(i),
                stage_id,
                _STATE_ICONS.get(state, state.value),
                f"[dim]{at}[/dim]",
                _format_details(entry),
            )

        chain = "[green]valid[/green]" if chain_valid else "[bold red]BROKEN[/bold red]"
        summary = f"[bold]Run:[/bold] {run_id}  |  [bold]Entries:[/bold] {len(entries)}  |  [bold]Chain:[/bold] {chain}"
        return Panel(
            Group(table, Text(""), Text.from_markup(summary)),
            title="[bold]Sitecast Run History[/bold]",
            border_style="blue",
            padding=(1, 2),
        )

    def print_history(
        self, run_id: str, entries: list[LedgerEntry], *, chain_valid: bool
    ) -> None:
        self.console.print(self.render_history(run_id, entries, chain_valid=chain_valid))

    def print_release(self, record: ReleaseRecord) -> None:
        lines = [
            f"[bold]Site:[/bold]     {record.site_id}",
            f"[bold]Release:[/bold]  {record.release_id}",
            f"[bold]Version:[/bold]  {record.version_handle}",
            f"[bold]Status:[/bold]   {_RELEASE_ICONS[record.status]}",
            f"[bold]URL:[/bold]      {record.url}",
        ]
        if record.completed_at:
            lines.append(
                f"[bold]Live at:[/bold]  {record.completed_at.strftime('%Y-%m-%d %H:%M:%S UTC')}"
            )
        self.console.print(
            Panel("\n".join(lines), title="[bold]Release[/bold]", border_style="green")
        )

    def print_result(self, result: DeploymentResult) -> None:
        lines = [
            "[bold green]Deployment complete![/bold green]",
            "",
            f"[bold]Run ID:[/bold]    {result.run_id}",
            f"[bold]Source:[/bold]    {result.source.host_kind.value}:{result.source.slug}@{result.source.ref}",
            f"[bold]Project:[/bold]   {result.classification.kind.value} ({result.classification.rule})",
            f"[bold]Files:[/bold]     {len(result.manifest)} ({len(result.uploaded_hashes)} uploaded)",
            f"[bold]Release:[/bold]   {result.release.release_id}",
            f"[bold]URL:[/bold]       {result.release.url}",
        ]
        self.console.print(
            Panel("\n".join(lines), title="[bold]Sitecast[/bold]", border_style="green", padding=(1, 2))
        )

    def print_chain_verification(self, run_id: str, valid: bool) -> None:
        if valid:
            self.console.print(f"[green]Hash chain for run {run_id} is valid.[/green]")
        else:
            self.console.print(f"[bold red]Hash chain for run {run_id} is BROKEN![/bold red]")
