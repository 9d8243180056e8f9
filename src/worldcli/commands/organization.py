"""Organization commands for World Forge CLI."""

from __future__ import annotations

from typing import Annotated

import typer

from ..context import get_context
from ..errors import NotFoundError
from ..logging import console
from ..output import output_json, print_organization
from ..setup import LoginRequirement, StepRequirement

app = typer.Typer(
    name="organization",
    help="Manage World Forge organizations.",
    invoke_without_command=True,
    rich_markup_mode=None,
)


@app.callback()
def show_organization(
    typer_ctx: typer.Context,
    output_json_flag: Annotated[
        bool,
        typer.Option("--json", help="Output the organization as JSON."),
    ] = False,
) -> None:
    """Show the selected organization.

    Examples:
        world organization
        world organization --json
    """
    if typer_ctx.invoked_subcommand is not None:
        return

    state = get_context().setup(
        LoginRequirement.NEED_LOGIN,
        StepRequirement.NEED_ID_ONLY,
        StepRequirement.IGNORE,
    )
    organization = state.require_organization()
    if output_json_flag:
        output_json(organization.to_dict())
    else:
        print_organization(organization)


@app.command("create")
def create_organization() -> None:
    """Create a new organization and select it.

    Examples:
        world organization create
    """
    ctx = get_context()
    ctx.setup(LoginRequirement.NEED_LOGIN, StepRequirement.IGNORE, StepRequirement.IGNORE)
    org = ctx.organizations().create()
    print_organization(org)


@app.command("switch")
def switch_organization(
    slug: Annotated[
        str | None,
        typer.Option(
            "--slug",
            "-s",
            help="Slug of the organization to switch to. Prompts when omitted.",
        ),
    ] = None,
) -> None:
    """Switch to another organization.

    Examples:
        world organization switch
        world organization switch --slug my_studio
    """
    ctx = get_context()
    ctx.setup(LoginRequirement.NEED_LOGIN, StepRequirement.IGNORE, StepRequirement.IGNORE)
    resolver = ctx.organizations()

    if slug:
        org = resolver.switch(slug)
    else:
        org = resolver.select(resolver.list_all())
        if org is None:
            raise NotFoundError(
                "You don't belong to any organization",
                hint="Create one with 'world organization create'.",
            )

    console.print(f"[green]Switched to organization '{org.name}' ({org.slug}).[/green]")
