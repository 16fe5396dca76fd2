"""memindex watch — keep the index in sync while notes are edited."""

from __future__ import annotations

import time
from pathlib import Path

from rich.console import Console

from memindex.cli.common import WorkspaceOption, print_report, running_service

console = Console()

_DEFAULT_WORKSPACE = Path(".")


def watch_cmd(workspace: WorkspaceOption = _DEFAULT_WORKSPACE) -> None:
    """Sync once, then re-sync after each burst of changes until Ctrl-C."""
    with running_service(workspace, watch=True) as (service, report):
        print_report(report)
        debounce = service.config.watch.debounce_ms / 1000
        console.print(
            f"[bold]Watching[/] {workspace.resolve()} "
            f"[dim](debounce {debounce:.1f}s, Ctrl-C to stop)[/]"
        )
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            console.print("\n[dim]Stopping watcher…[/]")
    console.print("[green]✓[/] Stopped")
