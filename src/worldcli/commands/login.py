"""Login command for World Forge CLI."""

from __future__ import annotations

from ..context import get_context
from ..errors import CreationCancelledError, SelectionCancelledError
from ..logging import console, get_logger
from ..setup import LoginRequirement, StepRequirement

logger = get_logger(__name__)


def login_command() -> None:
    """Log in to World Forge in your browser.

    After logging in you are walked through picking (or creating) an
    organization and a project for the current directory.

    Examples:
        world login
        world --env DEV login
    """
    ctx = get_context()
    credential = ctx.login_flow().run()
    console.print(f"[green]Logged in as {credential.name or credential.email or credential.id}.[/green]")

    try:
        state = ctx.setup(LoginRequirement.NEED_LOGIN, StepRequirement.NEED_DATA, StepRequirement.NEED_DATA)
    except (SelectionCancelledError, CreationCancelledError) as e:
        # The login itself succeeded, picking an org or project can happen later
        logger.debug(f"Setup after login stopped: {e.message}")
        console.print(f"[dim]{e.message}. You can select one later with 'world organization switch'.[/dim]")
        return

    if state.curr_repo_known:
        console.print("This repository belongs to a known project.")
    if state.organization is not None:
        console.print(f"Organization: {state.organization.name} ({state.organization.slug})")
    if state.project is not None:
        console.print(f"Project:      {state.project.name} ({state.project.slug})")
