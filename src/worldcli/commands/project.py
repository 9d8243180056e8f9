"""Project commands for World Forge CLI."""

from __future__ import annotations

from typing import Annotated

import typer

from ..context import get_context
from ..errors import NotFoundError
from ..logging import console
from ..output import output_json, print_project
from ..setup import LoginRequirement, StepRequirement

app = typer.Typer(
    name="project",
    help="Manage World Forge projects.",
    invoke_without_command=True,
    rich_markup_mode=None,
)


@app.callback()
def show_project(
    typer_ctx: typer.Context,
    output_json_flag: Annotated[
        bool,
        typer.Option("--json", help="Output the project as JSON."),
    ] = False,
) -> None:
    """Show the selected project.

    A project previously used from the current directory is picked up
    automatically.

    Examples:
        world project
        world project --json
    """
    if typer_ctx.invoked_subcommand is not None:
        return

    state = get_context().setup(
        LoginRequirement.NEED_LOGIN,
        StepRequirement.NEED_ID_ONLY,
        StepRequirement.NEED_ID_ONLY,
    )
    project = state.require_project()
    if output_json_flag:
        output_json(project.to_dict())
    else:
        print_project(project)


@app.command("create")
def create_project() -> None:
    """Create a project for the World project in the current directory.

    Run it from the project root (the directory with world.toml and
    cardinal/) of a git repository.

    Examples:
        world project create
    """
    ctx = get_context()
    state = ctx.setup(LoginRequirement.NEED_LOGIN, StepRequirement.NEED_DATA, StepRequirement.IGNORE)
    project = ctx.projects().create(state.require_organization().id)
    print_project(project)


@app.command("switch")
def switch_project(
    slug: Annotated[
        str | None,
        typer.Option(
            "--slug",
            "-s",
            help="Slug of the project to switch to. Prompts when omitted.",
        ),
    ] = None,
) -> None:
    """Switch to another project of the selected organization.

    Examples:
        world project switch
        world project switch --slug my_game
    """
    ctx = get_context()
    state = ctx.setup(LoginRequirement.NEED_LOGIN, StepRequirement.NEED_EXISTING_DATA, StepRequirement.IGNORE)
    organization = state.require_organization()
    org_id = organization.id
    resolver = ctx.projects()

    if slug:
        project = resolver.switch(org_id, slug)
    else:
        project = resolver.select(org_id, resolver.list_all(org_id))
        if project is None:
            raise NotFoundError(
                f"No projects in organization '{organization.name}'",
                hint="Create one with 'world project create'.",
            )

    console.print(f"[green]Switched to project '{project.name}' ({project.slug}).[/green]")


@app.command("update")
def update_project() -> None:
    """Update the selected project's name, slug, repository and regions.

    Examples:
        world project update
    """
    ctx = get_context()
    state = ctx.setup(
        LoginRequirement.NEED_LOGIN,
        StepRequirement.NEED_EXISTING_DATA,
        StepRequirement.NEED_EXISTING_DATA,
    )
    project = ctx.projects().update(state.require_organization().id, state.require_project())
    print_project(project)


@app.command("delete")
def delete_project() -> None:
    """Delete the selected project.

    You are asked to type the project slug to confirm.

    Examples:
        world project delete
    """
    ctx = get_context()
    state = ctx.setup(
        LoginRequirement.NEED_LOGIN,
        StepRequirement.NEED_EXISTING_DATA,
        StepRequirement.NEED_EXISTING_DATA,
    )
    ctx.projects().delete(state.require_organization().id, state.require_project())
