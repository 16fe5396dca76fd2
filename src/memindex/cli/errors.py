"""memindex rich error messages.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from memindex.cli.errors import err_no_index
    console.print(err_no_index(db_path))
    raise typer.Exit(1)
"""

from __future__ import annotations

from rich.markup import escape

from memindex.errors import EmbeddingDimensionError


def err_config(message: str) -> str:
    """Invalid memindex.yaml / global config value."""
    return (
        f"[red]Error:[/] Invalid configuration: {escape(message)}\n"
        "  Fix:  edit memindex.yaml (workspace) or ~/.memindex/config.yaml"
    )


def err_provider(message: str, provider: str) -> str:
    """Embedding backend unreachable or failing."""
    if provider == "ollama":
        hint = "  Check:  ollama serve   (and: ollama pull <model>)"
    else:
        hint = "  Check:  your API key, network access and embedding.model"
    return f"[red]Error:[/] Embedding provider '{provider}' failed.\n  {escape(message)}\n{hint}"


def err_dimensions(exc: EmbeddingDimensionError) -> str:
    """Configured embedding.dimensions does not match the model."""
    return (
        f"[red]Error:[/] Embedding dimension mismatch: configured {exc.expected}, "
        f"model returned {exc.actual}.\n"
        f"  Set:  embedding.dimensions: {exc.actual}   in memindex.yaml\n"
        "  The index is rebuilt automatically on the next run."
    )


def err_no_index(db_path: str) -> str:
    """No index database yet."""
    return (
        f"[red]Error:[/] No index found at '{db_path}'.\n"
        "  Run:  memindex sync"
    )


def err_empty_memory() -> str:
    return (
        "[red]Error:[/] Nothing to save: memory content is empty.\n"
        '  Run:  memindex save "text to remember"'
    )


def warn_no_vectors(reason: str | None = None) -> str:
    """Vector search disabled or sqlite-vec unavailable."""
    detail = f" ({reason})" if reason else ""
    return (
        f"[yellow]Warning:[/] Vector search is not available{detail}.\n"
        "  Try:  memindex search --keyword QUERY"
    )
