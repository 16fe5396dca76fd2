"""memindex status — show what the index currently holds.

Reads the database directly: no embedding provider is contacted, so status
works offline and never triggers a sync.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from memindex.cli.common import WorkspaceOption, load_workspace_config
from memindex.cli.errors import err_no_index
from memindex.db.connection import Database
from memindex.db.models import IndexMeta, IndexStats
from memindex.db.repository import Repository
from memindex.db.schema import fts_table_exists, initialize, load_index_meta
from memindex.db.vectors import vec_table_dims, vec_table_exists

console = Console()

_DEFAULT_WORKSPACE = Path(".")


def status_cmd(workspace: WorkspaceOption = _DEFAULT_WORKSPACE) -> None:
    """Show index statistics, capabilities and the embedding configuration."""
    cfg = load_workspace_config(workspace)
    db_path = cfg.db_path_for(workspace)

    if not db_path.exists():
        console.print(err_no_index(str(db_path)))
        raise typer.Exit(1)

    db = Database(db_path, load_vec=cfg.index.vector)
    conn = db.connect()
    try:
        initialize(conn, fts_enabled=False)
        has_vec = db.vec_available and vec_table_exists(conn)
        repo = Repository(conn, vec_enabled=has_vec)
        stats = repo.stats()
        vectors = repo.count_embeddings() if has_vec else None
        dims = vec_table_dims(conn)
        fts = fts_table_exists(conn)
        cached = repo.count_cached_embeddings()
        meta = load_index_meta(conn)
    finally:
        conn.close()

    size_mb = db_path.stat().st_size / (1024 * 1024)
    lines = [
        f"Workspace: [bold]{workspace.resolve()}[/]",
        f"Database:  {db_path} ({size_mb:.1f} MB)",
        "",
        _stats_line(stats),
        f"Cache:     {cached:,} embeddings",
        "",
        _vector_line(db, vectors, dims),
        f"Keyword:   {'[green]✓ FTS5[/]' if fts else '[yellow]✗ unavailable[/]'}",
    ]
    lines += _meta_lines(meta)

    console.print(Panel("\n".join(lines), title="[bold]Memory Index[/]", expand=False))


def _stats_line(stats: IndexStats) -> str:
    size_kb = stats.total_size / 1024
    return (
        f"Files: [bold]{stats.file_count}[/]  |  "
        f"Chunks: [bold]{stats.chunk_count:,}[/]  |  "
        f"Size: [bold]{size_kb:,.1f} KB[/]"
    )


def _vector_line(db: Database, vectors: int | None, dims: int | None) -> str:
    if not db.vec_available:
        reason = db.vec_error or "disabled"
        return f"Vectors:   [yellow]✗ unavailable[/] [dim]({reason})[/]"
    if vectors is None:
        return "Vectors:   [dim]no vector table yet[/]"
    return f"Vectors:   [green]✓[/] {vectors:,} × {dims} dims"


def _meta_lines(meta: IndexMeta | None) -> list[str]:
    if meta is None:
        return ["", "[dim]Not indexed yet. Run:  memindex sync[/]"]
    lines = [
        "",
        f"Provider:  {meta.provider}  [dim]{meta.provider_key or ''}[/]",
        f"Model:     {meta.model}",
        f"Chunking:  {meta.chunk_tokens} tokens, {meta.chunk_overlap} overlap",
    ]
    return lines
