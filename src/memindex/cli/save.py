"""memindex save — append a note to today's memory file."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from memindex.cli.common import (
    WorkspaceOption,
    load_workspace_config,
    print_report,
    running_service,
)
from memindex.cli.errors import err_empty_memory
from memindex.service import MemoryService

console = Console()

_DEFAULT_WORKSPACE = Path(".")


def save_cmd(
    content: Annotated[str, typer.Argument(help="Text to remember.")],
    workspace: WorkspaceOption = _DEFAULT_WORKSPACE,
    title: Annotated[
        str | None,
        typer.Option("--title", "-t", help="Entry heading (default: current time)."),
    ] = None,
    tag: Annotated[
        list[str] | None,
        typer.Option("--tag", help="Tag for the entry (repeatable)."),
    ] = None,
    sync: Annotated[
        bool,
        typer.Option("--sync", help="Index the workspace right after saving."),
    ] = False,
) -> None:
    """Save a memory entry to memory/YYYY-MM-DD.md."""
    if not content.strip():
        console.print(err_empty_memory())
        raise typer.Exit(1)

    service = MemoryService(workspace, load_workspace_config(workspace))
    path = service.save_memory(content, title=title, tags=tag or [])
    console.print(f"[green]✓[/] Saved to {path}")

    if sync:
        with running_service(workspace) as (_service, report):
            print_report(report)
