"""Sitecast CLI, a Typer-based operator surface.

Provides the ``sitecast`` command with subcommands for deploying a
repository, checking and re-issuing releases, inspecting a local tree,
storing credentials, and reading a run's ledger history.

All output uses Rich for formatted terminal display.
"""
