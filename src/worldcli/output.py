"""Unified output formatting for World Forge CLI.

Commands print either JSON (``--json``) or human-readable text. Both go
through these helpers so the two modes stay consistent.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.markup import escape

from .logging import console

if TYPE_CHECKING:
    from .config import Config
    from .models import Organization, Project


def output_json(data: Any) -> None:
    """Output data as JSON.

    Uses plain print() to avoid Rich console formatting.

    Args:
        data: JSON-serializable data to output.
    """
    print(json.dumps(data, indent=2, ensure_ascii=False))


def print_header(title: str) -> None:
    console.print()
    console.print(f"[bold]{escape(title)}[/bold]")


def print_details(rows: list[tuple[str, str]]) -> None:
    """Print aligned ``label: value`` rows.

    Args:
        rows: Pairs of label and value. Empty values show as "-".
    """
    width = max((len(label) for label, _ in rows), default=0) + 1
    for label, value in rows:
        console.print(f"  {label + ':':<{width}} {value or '-'}", markup=False, highlight=False)


def print_organization(org: Organization) -> None:
    print_header("Organization")
    print_details([("Name", org.name), ("Slug", org.slug), ("ID", org.id)])


def print_project(project: Project) -> None:
    print_header("Project")
    print_details(
        [
            ("Name", project.name),
            ("Slug", project.slug),
            ("ID", project.id),
            ("Repository", project.repo_url),
            ("Path", project.repo_path),
            ("Regions", ", ".join(project.config.regions)),
        ]
    )


def redact_token(token: str) -> str:
    """Show only the start of a token."""
    if not token:
        return ""
    return token[:20] + "..." if len(token) > 20 else "***"


def config_display(config: Config) -> dict[str, Any]:
    """The config as shown by ``world config``, with the token redacted."""
    data = config.to_dict()
    data["credential"]["token"] = redact_token(config.credential.token)
    data["current_repo"] = {
        "url": config.curr_repo_url,
        "path": config.curr_repo_path,
    }
    return data
