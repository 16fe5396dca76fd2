"""Helpers shared by the memindex commands: options, service startup, progress."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn

from memindex.cli.errors import err_config, err_dimensions, err_provider
from memindex.config import MemIndexConfig, load_config
from memindex.db.models import ProgressUpdate
from memindex.errors import (
    ConfigError,
    EmbeddingDimensionError,
    EmbeddingProviderError,
)
from memindex.index.manager import SyncReport
from memindex.service import MemoryService

console = Console()

WorkspaceOption = Annotated[
    Path,
    typer.Option(
        "--workspace",
        "-w",
        envvar="MEMINDEX_WORKSPACE",
        help="Workspace holding MEMORY.md and memory/ (default: current directory).",
    ),
]


def load_workspace_config(workspace: Path, *, watch: bool = False) -> MemIndexConfig:
    """Load config for *workspace*; one-shot commands never start the watcher."""
    try:
        cfg = load_config(workspace)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    cfg.watch.enabled = watch
    return cfg


@contextmanager
def running_service(
    workspace: Path,
    *,
    watch: bool = False,
    force_reindex: bool = False,
    show_progress: bool = True,
) -> Iterator[tuple[MemoryService, SyncReport | None]]:
    """Start a MemoryService for *workspace*, translating failures into exit 1."""
    cfg = load_workspace_config(workspace, watch=watch)
    service = MemoryService(workspace, cfg)
    label = "Reindexing" if force_reindex else "Syncing"
    try:
        if show_progress:
            with sync_progress(label) as on_progress:
                report = service.start(on_progress, force_reindex=force_reindex)
        else:
            report = service.start(force_reindex=force_reindex)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    except EmbeddingDimensionError as exc:
        console.print(err_dimensions(exc))
        raise typer.Exit(1) from exc
    except EmbeddingProviderError as exc:
        console.print(err_provider(str(exc), cfg.embedding.provider))
        raise typer.Exit(1) from exc

    try:
        yield service, report
    finally:
        service.stop()


@contextmanager
def sync_progress(label: str = "Syncing") -> Iterator[Callable[[ProgressUpdate], None]]:
    """Yield a ProgressUpdate callback that drives a transient rich progress bar."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TextColumn("[dim]{task.fields[file]}[/dim]"),
        transient=True,
        console=console,
    ) as prog:
        task = prog.add_task(f"{label}…", total=None, file="")

        def on_progress(update: ProgressUpdate) -> None:
            prog.update(
                task,
                total=update.total,
                completed=update.completed,
                file=update.label or "",
            )

        yield on_progress


def print_report(report: SyncReport | None) -> None:
    if report is None:
        return
    parts = [
        f"[bold]{report.indexed}[/] indexed",
        f"{report.skipped} unchanged",
        f"{report.removed} removed",
    ]
    if report.failed:
        parts.append(f"[yellow]{report.failed} failed[/]")
    console.print("[green]✓[/] " + ", ".join(parts))
