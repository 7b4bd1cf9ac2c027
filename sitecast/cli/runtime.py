"""Shared plumbing for CLI commands: wiring, async execution, error display."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from typing import TypeVar

import httpx
import typer
from rich.console import Console
from rich.markup import escape

from sitecast.auth.profile_store import SqliteProfileStore
from sitecast.config import DeployConfig
from sitecast.core.errors import BuildFailed, DeployError
from sitecast.core.pipeline import DeploymentPipeline
from sitecast.core.run_ledger import RunLedger

T = TypeVar("T")

console = Console()

_REMEDIATION_HINTS: dict[str, str] = {
    "reconnect": "Reconnect the provider account, then run the deployment again.",
    "fix-build": "Fix the repository's build configuration, then deploy again.",
    "retry": "This looks transient; start a new deployment run.",
}


@asynccontextmanager
async def open_pipeline(config: DeployConfig) -> AsyncIterator[DeploymentPipeline]:
    """A pipeline backed by the on-disk profile store and Run Ledger."""
    store = SqliteProfileStore(config.profile_db_path)
    ledger = RunLedger(config.ledger_path)
    async with httpx.AsyncClient(timeout=config.http_timeout_seconds) as http:
        yield DeploymentPipeline(config, store, http, ledger=ledger)


def report_failure(exc: DeployError) -> None:
    """Print a typed failure with its remediation hint."""
    console.print(f"[bold red]{type(exc).__name__}:[/bold red] {escape(str(exc))}")
    if isinstance(exc, BuildFailed) and exc.output:
        console.print("[dim]--- build output (tail) ---[/dim]")
        console.print(exc.output.rstrip()[-4000:], markup=False, highlight=False)
    hint = _REMEDIATION_HINTS.get(exc.remediation)
    if hint:
        console.print(f"[yellow]{hint}[/yellow]")


def run(awaitable: Awaitable[T]) -> T:
    """Run *awaitable* to completion; typed failures exit with code 1."""
    try:
        return asyncio.run(_await(awaitable))
    except DeployError as exc:
        report_failure(exc)
        raise typer.Exit(code=1)


async def _await(awaitable: Awaitable[T]) -> T:
    return await awaitable
