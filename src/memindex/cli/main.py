"""memindex CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer

from memindex.cli.save import save_cmd
from memindex.cli.search import search_cmd
from memindex.cli.status import status_cmd
from memindex.cli.sync import reindex_cmd, sync_cmd
from memindex.cli.watch import watch_cmd
from memindex.log import configure_logging


def _version() -> str:
    try:
        return importlib.metadata.version("memindex")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"memindex {_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="memindex",
    help=(
        "memindex — local semantic memory index over Markdown notes.\n\n"
        "  memindex sync     Index MEMORY.md and memory/**/*.md (incremental).\n"
        "  memindex search   Find the notes most relevant to a query."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
) -> None:
    """memindex — local semantic memory index over Markdown notes."""
    configure_logging(logging.DEBUG if verbose else logging.WARNING)


app.command("sync")(sync_cmd)
app.command("reindex")(reindex_cmd)
app.command("search")(search_cmd)
app.command("status")(status_cmd)
app.command("watch")(watch_cmd)
app.command("save")(save_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed memindex version."""
    typer.echo(f"memindex {_version()}")


if __name__ == "__main__":
    app()
