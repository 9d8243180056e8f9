"""CLI entry point for World Forge CLI."""

import sys
from pathlib import Path
from typing import Annotated

import typer

from . import __version__
from .context import get_context
from .errors import format_error_with_hint
from .logging import console, error_console, get_logger, print_error, setup_logging
from .output import config_display, output_json

app = typer.Typer(
    name="world",
    help="Deploy and manage World Engine games on World Forge.",
    no_args_is_help=True,
    rich_markup_mode=None,
    pretty_exceptions_enable=False,
)

logger = get_logger(__name__)

# Register command groups (imported here to avoid circular imports)
from .commands import deploy, forge, login, organization, project, user  # noqa: E402

app.command("login")(login.login_command)
app.add_typer(forge.app, name="forge")
app.add_typer(organization.app, name="organization")
app.add_typer(project.app, name="project")
app.add_typer(user.app, name="user")
app.command("deploy")(deploy.deploy_command)
app.command("destroy")(deploy.destroy_command)
app.command("reset")(deploy.reset_command)
app.command("promote")(deploy.promote_command)
app.command("status")(deploy.status_command)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"world {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to config file.",
            envvar="WORLD_FORGE_CONFIG",
        ),
    ] = None,
    env: Annotated[
        str | None,
        typer.Option(
            "--env",
            "-e",
            help="World Forge environment: PROD, DEV or LOCAL.",
            envvar="WORLD_FORGE_ENV",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable debug logging.",
            is_eager=True,
        ),
    ] = False,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """World Forge CLI - deploy and manage World Engine games."""
    setup_logging(verbose=verbose)
    logger.debug("Debug logging enabled")

    ctx = get_context()
    ctx.verbose = verbose
    ctx.env = env
    if config_path:
        ctx.config_path = config_path


@app.command("config")
def show_config(
    output_json_flag: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON."),
    ] = False,
) -> None:
    """Show the current configuration with the token redacted."""
    from .config import get_config_path

    ctx = get_context()
    config = ctx.get_config()
    data = config_display(config)

    if output_json_flag:
        output_json(data)
        return

    console.print_json(data=data)
    console.print(f"\n[dim]Config file: {config.path or ctx.config_path or get_config_path()}[/dim]")
    if config.credential.token and config.credential.is_expired():
        console.print("[yellow]Login token has expired, run 'world login' to refresh it.[/yellow]")


def cli() -> None:
    """Main entry point for the CLI."""
    try:
        app()
    except Exception as e:
        message, hint = format_error_with_hint(e)
        print_error(message, hint)
        if get_context().verbose:
            error_console.print_exception()
        sys.exit(1)


if __name__ == "__main__":
    cli()
