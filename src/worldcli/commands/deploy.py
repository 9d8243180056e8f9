"""Deployment commands for World Forge CLI."""

from __future__ import annotations

from typing import Annotated

import typer

from ..context import get_context
from ..deployment import DeploymentType, show_status
from ..setup import LoginRequirement, StepRequirement


def _run(deployment_type: DeploymentType, project_requirement: StepRequirement) -> None:
    ctx = get_context()
    state = ctx.setup(LoginRequirement.NEED_LOGIN, project_requirement, project_requirement)
    ctx.deployer().run(state.require_organization(), state.require_project(), deployment_type)


def deploy_command(
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Deploy even if another deployment is in progress.",
        ),
    ] = False,
) -> None:
    """Build the game image and deploy it to the preview environment.

    Run it from the World project root. Docker must be running.

    Examples:
        world deploy
        world deploy --force
    """
    _run(DeploymentType.FORCE_DEPLOY if force else DeploymentType.DEPLOY, StepRequirement.NEED_DATA)


def destroy_command() -> None:
    """Remove the project's deployment.

    Examples:
        world destroy
    """
    _run(DeploymentType.DESTROY, StepRequirement.NEED_EXISTING_DATA)


def reset_command() -> None:
    """Reset the state of the preview deployment.

    Examples:
        world reset
    """
    _run(DeploymentType.RESET, StepRequirement.NEED_EXISTING_DATA)


def promote_command() -> None:
    """Promote the preview deployment to live.

    Examples:
        world promote
    """
    _run(DeploymentType.PROMOTE, StepRequirement.NEED_EXISTING_DATA)


def status_command() -> None:
    """Show deployment status and health of the selected project.

    Examples:
        world status
    """
    ctx = get_context()
    state = ctx.setup(
        LoginRequirement.NEED_LOGIN,
        StepRequirement.NEED_EXISTING_DATA,
        StepRequirement.NEED_EXISTING_DATA,
    )
    show_status(ctx.get_client(), state.require_organization(), state.require_project())
