"""Logging setup and the shared Rich consoles for World Forge CLI."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

console = Console()
error_console = Console(stderr=True)

# Loggers held at WARNING unless --verbose is given
QUIET_LOGGERS = ("httpx", "httpcore")


def setup_logging(verbose: bool = False) -> None:
    """Send log records to stderr through Rich.

    Args:
        verbose: DEBUG level with timestamps and source paths. Otherwise only
            warnings are shown, since everything else is printed on the console.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=error_console,
                rich_tracebacks=True,
                show_time=verbose,
                show_path=verbose,
            )
        ],
        force=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def print_error(message: str, hint: str | None = None) -> None:
    """Print a command failure, with an optional hint below it."""
    error_console.print(f"[red]Error: {escape(message)}[/red]", highlight=False)
    if hint:
        error_console.print(f"[yellow]{escape(hint)}[/yellow]", highlight=False)
