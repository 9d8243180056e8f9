"""Forge overview commands for World Forge CLI."""

from __future__ import annotations

import typer

from ..context import get_context
from ..deployment import show_status
from ..logging import console
from ..output import print_details, print_header
from ..setup import LoginRequirement, StepRequirement

app = typer.Typer(
    name="forge",
    help="Show what the CLI is working with on World Forge.",
    invoke_without_command=True,
    rich_markup_mode=None,
)


@app.callback()
def forge_overview(typer_ctx: typer.Context) -> None:
    """Show the login, organization and project the CLI will use.

    Works offline: nothing is fetched from World Forge.

    Examples:
        world forge
    """
    if typer_ctx.invoked_subcommand is not None:
        return

    ctx = get_context()
    config = ctx.get_config()
    state = ctx.setup(LoginRequirement.IGNORE_LOGIN, StepRequirement.IGNORE, StepRequirement.IGNORE)

    print_header("World Forge")
    if state.logged_in:
        login = config.credential.name or config.credential.email or config.credential.id
    elif config.credential.token:
        login = "expired, run 'world login'"
    else:
        login = "not logged in, run 'world login'"

    known = config.find_known_project(
        config.curr_repo_url,
        config.curr_repo_path,
        organization_id=config.organization_id or None,
    )
    print_details(
        [
            ("Login", login),
            ("Organization ID", known.organization_id if known else config.organization_id),
            ("Project ID", known.project_id if known else config.project_id),
            ("Project", known.project_name if known else ""),
            ("Repository", config.curr_repo_url),
            ("Repository path", config.curr_repo_path),
        ]
    )
    if known is not None:
        console.print("[dim]Project picked up from the current directory.[/dim]")


@app.command("status")
def forge_status() -> None:
    """Show deployment status and health of the selected project.

    Examples:
        world forge status
    """
    ctx = get_context()
    state = ctx.setup(
        LoginRequirement.NEED_LOGIN,
        StepRequirement.NEED_EXISTING_DATA,
        StepRequirement.NEED_EXISTING_DATA,
    )
    show_status(ctx.get_client(), state.require_organization(), state.require_project())
