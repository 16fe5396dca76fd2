"""memindex search — query the memory index from the command line."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from memindex.cli.common import WorkspaceOption, running_service
from memindex.cli.errors import warn_no_vectors
from memindex.db.models import SearchResult

console = Console()

_DEFAULT_WORKSPACE = Path(".")
_PREVIEW_CHARS = 160


def search_cmd(
    query: Annotated[str, typer.Argument(help="What to look for.")],
    workspace: WorkspaceOption = _DEFAULT_WORKSPACE,
    top_k: Annotated[
        int | None,
        typer.Option("--top-k", "-k", min=1, help="Maximum results (default: search.max_results)."),
    ] = None,
    keyword: Annotated[
        bool,
        typer.Option("--keyword", help="Full-text (BM25) search instead of vector search."),
    ] = False,
) -> None:
    """Search memory notes and print the best-matching chunks."""
    with running_service(workspace, show_progress=False) as (service, _report):
        manager = service.manager
        limit = top_k or service.config.search.max_results

        if keyword:
            if not manager.fts_available:
                console.print("[yellow]Warning:[/] Full-text search is not available.")
                raise typer.Exit(1)
            results = manager.search_keyword(query, top_k=limit)
        else:
            if not manager.vector_available:
                console.print(warn_no_vectors())
                raise typer.Exit(1)
            results = service.search_memories(query, max_results=limit)

    if not results:
        console.print("[dim]No matching memories.[/]")
        return
    console.print(_results_table(results))


def _results_table(results: list[SearchResult]) -> Table:
    table = Table(show_lines=False, padding=(0, 1))
    table.add_column("Score", justify="right", style="bold")
    table.add_column("Location", style="cyan", no_wrap=True)
    table.add_column("Snippet")
    for r in results:
        preview = " ".join(r.snippet.split())
        if len(preview) > _PREVIEW_CHARS:
            preview = preview[:_PREVIEW_CHARS].rstrip() + "…"
        table.add_row(
            f"{r.score:.2f}",
            f"{r.path}:{r.start_line}-{r.end_line}",
            escape(preview),
        )
    return table
