"""``sitecast detect PATH`` and ``sitecast manifest PATH``: local dry runs.

Classify a checked-out tree, or compute the content manifest of a publish
directory, without touching any remote service.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table

from sitecast.build.detector import detect_project
from sitecast.cli.runtime import console
from sitecast.hosting.manifest import build_manifest


def detect_cmd(
    path: Path = typer.Argument(
        ..., exists=True, file_okay=False, dir_okay=True, help="Project tree to classify."
    ),
) -> None:
    """Classify a project tree as prebuilt or buildable."""
    classification = detect_project(path)
    console.print(f"[bold]Kind:[/bold]        {classification.kind.value}")
    console.print(f"[bold]Rule:[/bold]        {classification.rule}")
    console.print(f"[bold]Publish dir:[/bold] {classification.publish_dir or '(after build)'}")


def manifest_cmd(
    path: Path = typer.Argument(
        ..., exists=True, file_okay=False, dir_okay=True, help="Directory to publish."
    ),
) -> None:
    """Print the content manifest of a publish directory."""
    build = build_manifest(path)
    manifest = build.manifest

    table = Table(title=f"Manifest ({len(manifest)} files)", header_style="bold cyan")
    table.add_column("Path", style="cyan", no_wrap=True)
    table.add_column("SHA-256 (gzipped)", style="dim", overflow="fold")
    table.add_column("Bytes", justify="right")
    for site_path, digest in manifest.files.items():
        table.add_row(site_path, digest, str(len(build.contents[site_path])))

    console.print(table)
    console.print(f"[bold]Distinct hashes:[/bold] {len(manifest.hashes)}")
    console.print(f"[bold]Manifest hash:[/bold]   {manifest.manifest_hash}")
