"""memindex sync / reindex — bring the index up to date with the workspace.

  memindex sync                 incremental: only new or changed files are embedded
  memindex reindex [--yes]      drop every indexed row and re-embed everything
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from memindex.cli.common import WorkspaceOption, print_report, running_service

console = Console()

_DEFAULT_WORKSPACE = Path(".")


def sync_cmd(workspace: WorkspaceOption = _DEFAULT_WORKSPACE) -> None:
    """Index new and changed memory files; drop removed ones."""
    with running_service(workspace) as (service, report):
        print_report(report)
        stats = service.get_stats()
        console.print(
            f"  Files: [bold]{stats.file_count}[/]  |  Chunks: [bold]{stats.chunk_count:,}[/]"
        )


def reindex_cmd(
    workspace: WorkspaceOption = _DEFAULT_WORKSPACE,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Rebuild the whole index (re-embeds every chunk not in the cache)."""
    if not yes:
        console.print(f"\nRebuild the memory index for [bold]{workspace.resolve()}[/]")
        if not typer.confirm("Confirm full reindex?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)

    with running_service(workspace, force_reindex=True) as (_service, report):
        print_report(report)
