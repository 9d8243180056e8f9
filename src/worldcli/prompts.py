"""Interactive prompts.

Every question the CLI asks goes through an ``InputReader`` so flows can be
driven by scripted answers in tests.
"""

from __future__ import annotations

from typing import Protocol, TypeVar

from .logging import console

T = TypeVar("T")


class InputReader(Protocol):
    """Reads one line of user input."""

    def prompt(self, message: str, default: str = "") -> str:
        """Ask ``message`` and return the answer, or ``default`` on empty input."""
        ...


class ConsoleInputReader:
    """Reads answers from the terminal via the shared Rich console."""

    def prompt(self, message: str, default: str = "") -> str:
        suffix = f" [{default}]" if default else ""
        try:
            answer = console.input(f"{message}{suffix}: ", markup=False)
        except EOFError:
            answer = ""
        answer = answer.strip()
        return answer or default


def prompt_choice(reader: InputReader, message: str, choices: list[str], default: str) -> str:
    """Ask until the answer is one of ``choices``.

    Matching is exact, so ``Y`` and ``y`` are different answers. Callers list
    every spelling they accept.
    """
    shown = "/".join(choices)
    while True:
        answer = reader.prompt(f"{message} ({shown})", default)
        if answer in choices:
            return answer
        console.print(f"Please answer one of: {shown}")


def confirm(reader: InputReader, message: str, default: bool = False) -> bool:
    """Ask a yes/no question that only an uppercase ``Y`` confirms."""
    answer = reader.prompt(f"{message} (Y/n)", "Y" if default else "n")
    return answer == "Y"


def match_number_or_slug(items: list[T], answer: str) -> T | None:
    """Resolve a 1-based number or an exact slug against ``items``."""
    if answer.isdigit():
        index = int(answer)
        if 1 <= index <= len(items):
            return items[index - 1]
        return None
    for item in items:
        if getattr(item, "slug", None) == answer:
            return item
    return None
