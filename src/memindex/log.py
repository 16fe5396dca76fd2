"""Logging setup for the memindex CLI.

Library modules only call ``logging.getLogger(__name__)``; handlers are
installed here, by the CLI, so embedding applications keep control of their
own logging configuration.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

# Third-party loggers that are chatty at INFO.
_QUIET_LOGGERS = ("LiteLLM", "litellm", "httpx", "httpcore", "watchdog")


def configure_logging(
    level: int | str = logging.WARNING,
    *,
    console: Console | None = None,
) -> logging.Handler:
    """Route memindex log records through a rich handler.

    Args:
        level: Level for the ``memindex`` logger (name or number).
        console: Console to render on; defaults to stderr.

    Returns:
        The installed handler (replaces any handler from an earlier call).
    """
    if isinstance(level, str):
        name = level
        level = logging.getLevelName(name.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {name}")

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s", datefmt="%H:%M:%S"))

    logger = logging.getLogger("memindex")
    for old in [h for h in logger.handlers if isinstance(h, RichHandler)]:
        logger.removeHandler(old)
    logger.addHandler(handler)
    logger.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return handler
