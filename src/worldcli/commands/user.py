"""User commands for World Forge CLI."""

from __future__ import annotations

from collections.abc import Callable
from typing import Annotated

import typer

from ..config import save_config_quietly
from ..context import get_context
from ..errors import NotLoggedInError, ValidationFailedError
from ..logging import console
from ..organizations import ROLES
from ..setup import LoginRequirement, StepRequirement
from ..validate import validate_email, validate_name, validate_url

app = typer.Typer(
    name="user",
    help="Manage your profile and organization members.",
    no_args_is_help=True,
    rich_markup_mode=None,
)

EmailOption = Annotated[
    str | None,
    typer.Option("--email", help="Email address of the user. Prompts when omitted."),
]
RoleOption = Annotated[
    str | None,
    typer.Option("--role", help=f"Role in the organization: {', '.join(ROLES)}. Prompts when omitted."),
]


@app.command("invite")
def invite_user(email: EmailOption = None, role: RoleOption = None) -> None:
    """Invite a user to the selected organization.

    Examples:
        world user invite
        world user invite --email jane@example.com --role member
    """
    ctx = get_context()
    state = ctx.setup(LoginRequirement.NEED_LOGIN, StepRequirement.NEED_EXISTING_DATA, StepRequirement.IGNORE)
    organization = state.require_organization()

    email = email or ctx.reader.prompt("Enter user email", "")
    role = role or ctx.reader.prompt(f"Enter role ({'/'.join(ROLES)})", "member")
    ctx.organizations().invite(organization.id, email, role)
    console.print(f"[green]Invited {email} to '{organization.name}' as {role}.[/green]")


@app.command("role")
def change_role(email: EmailOption = None, role: RoleOption = None) -> None:
    """Change the role of a member of the selected organization.

    Use role "none" to remove the user from the organization.

    Examples:
        world user role --email jane@example.com --role admin
    """
    ctx = get_context()
    state = ctx.setup(LoginRequirement.NEED_LOGIN, StepRequirement.NEED_EXISTING_DATA, StepRequirement.IGNORE)
    organization = state.require_organization()

    email = email or ctx.reader.prompt("Enter user email", "")
    role = role or ctx.reader.prompt(f"Enter role ({'/'.join(ROLES)})", "member")
    ctx.organizations().update_role(organization.id, email, role)
    console.print(f"[green]Changed role of {email} in '{organization.name}' to {role}.[/green]")


def _prompt_until_valid(
    prompt: Callable[[str, str], str],
    message: str,
    default: str,
    validate: Callable[[str], str],
) -> str:
    while True:
        answer = prompt(message, default)
        try:
            return validate(answer)
        except ValidationFailedError as e:
            console.print(f"[red]{e.message}[/red]")


@app.command("update")
def update_user() -> None:
    """Update your name, email and avatar.

    Empty answers keep the current values.

    Examples:
        world user update
    """
    ctx = get_context()
    state = ctx.setup(LoginRequirement.NEED_LOGIN, StepRequirement.IGNORE, StepRequirement.IGNORE)
    current = state.user
    if current is None:
        raise NotLoggedInError()
    prompt = ctx.reader.prompt

    name = _prompt_until_valid(prompt, "Enter name", current.name, validate_name)
    email = _prompt_until_valid(prompt, "Enter email", current.email, validate_email)
    avatar_url = _prompt_until_valid(
        prompt,
        "Enter avatar URL (optional)",
        current.avatar_url,
        lambda url: validate_url(url) if url else "",
    )

    ctx.get_client().update_user(name, email, avatar_url)

    config = ctx.get_config()
    config.credential.name = name
    config.credential.email = email
    save_config_quietly(config)
    console.print("[green]User updated.[/green]")
