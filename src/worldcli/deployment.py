"""Deploy, destroy, reset and promote projects, and report their status."""

from __future__ import annotations

import tempfile
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from rich.table import Table

from .builder import BuiltImage, build_image
from .client import ForgeClient
from .errors import APIError
from .logging import console, get_logger
from .models import (
    DeploymentInfo,
    DeploymentPreview,
    DeployStatus,
    EnvironmentHealth,
    Organization,
    Project,
    ServiceHealth,
    env_display_name,
)
from .prompts import InputReader, confirm

logger = get_logger(__name__)

ENV_PREVIEW = "dev"
ENV_LIVE = "prod"

POLL_INTERVAL = 3.0
# Five minutes at one attempt every 3 seconds
MAX_WAIT_ATTEMPTS = 100


class DeploymentType(str, Enum):
    DEPLOY = "deploy"
    FORCE_DEPLOY = "forceDeploy"
    DESTROY = "destroy"
    RESET = "reset"
    PROMOTE = "promote"

    @property
    def builds_image(self) -> bool:
        return self in (DeploymentType.DEPLOY, DeploymentType.FORCE_DEPLOY)

    @property
    def target_env(self) -> str:
        """The environment this operation acts on."""
        return ENV_LIVE if self is DeploymentType.PROMOTE else ENV_PREVIEW

    @property
    def verb(self) -> str:
        return "deploy" if self.builds_image else self.value


def render_preview(preview: DeploymentPreview) -> None:
    console.print()
    console.print("[bold]Basic Information[/bold]")
    console.print(f"  Organization:    {preview.org_name}")
    console.print(f"  Org Slug:        {preview.org_slug}")
    console.print(f"  Project:         {preview.project_name}")
    console.print(f"  Project Slug:    {preview.project_slug}")
    console.print()
    console.print("[bold]Configuration[/bold]")
    console.print(f"  Executor:        {preview.executor_name}")
    console.print(f"  Deployment Type: {preview.deployment_type}")
    console.print(f"  Tick Rate:       {preview.tick_rate}")
    console.print()
    console.print("[bold]Deployment Regions[/bold]")
    console.print(f"  {', '.join(preview.regions) or '(none)'}")
    console.print()


def _status_style(info: DeploymentInfo) -> str:
    if info.status == DeployStatus.FAILED.value:
        return "red"
    if info.is_finished:
        return "green"
    return "yellow"


def print_deployment_info(info: DeploymentInfo) -> None:
    console.print(info.format_line(), style=_status_style(info), markup=False)


def _service_cell(service: ServiceHealth) -> str:
    style = "green" if service.ok else "red"
    return f"[{style}]{service.describe()}[/{style}]"


def build_health_table(health: dict[str, EnvironmentHealth]) -> Table:
    """Build a table of deployed instances per environment and region."""
    table = Table(title="Health")
    table.add_column("Environment")
    table.add_column("Region")
    table.add_column("Instance", justify="right")
    table.add_column("Cardinal")
    table.add_column("Nakama")

    for env, env_health in health.items():
        if env_health.ok:
            env_label = f"[green]{env_display_name(env)}[/green]"
        elif env_health.offline:
            env_label = f"[red]{env_display_name(env)}[/red]"
        else:
            env_label = f"[yellow]{env_display_name(env)}[/yellow]"

        if not env_health.instances:
            table.add_row(env_label, "-", "-", "No deployed instances", "")
            continue
        for instance in env_health.instances:
            table.add_row(
                env_label,
                instance.region,
                str(instance.instance),
                _service_cell(instance.cardinal),
                _service_cell(instance.nakama),
            )
    return table


def _should_show_health(info: DeploymentInfo) -> bool:
    if info.deployment_type == DeploymentType.DESTROY.value:
        return info.status == DeployStatus.REMOVED.value
    if info.deployment_type == DeploymentType.RESET.value:
        return True
    return info.status == DeployStatus.CREATED.value


def show_status(client: ForgeClient, org: Organization, project: Project) -> dict[str, DeploymentInfo]:
    """Print the deployment status and health of ``project``.

    Returns:
        The latest deployment per environment (empty when never deployed).
    """
    console.print()
    console.print("[bold]Deployment Status[/bold]")
    console.print(f"  Organization: {org.name}")
    console.print(f"  Org Slug:     {org.slug}")
    console.print(f"  Project:      {project.name}")
    console.print(f"  Project Slug: {project.slug}")
    console.print(f"  Repository:   {project.repo_url}")
    console.print()

    deployments = client.get_deployments(project.id)
    if not deployments:
        console.print("Project has not been deployed.")
        return deployments

    for info in deployments.values():
        print_deployment_info(info)

    healthy_envs = {env for env, info in deployments.items() if _should_show_health(info)}
    if healthy_envs:
        health = client.get_health(project.id)
        shown = {env: value for env, value in health.items() if env in healthy_envs}
        if shown:
            console.print()
            console.print(build_health_table(shown))
    return deployments


@dataclass
class Deployer:
    """Runs deployment operations for one project.

    Attributes:
        client: Forge API client.
        reader: Answers the confirmation prompt.
        project_root: Directory the image is built from.
        build: Builds and saves the image.
        sleep: Waits between status polls.
        poll_interval: Seconds between status polls.
        max_attempts: Status polls before giving up.
    """

    client: ForgeClient
    reader: InputReader
    project_root: Path = field(default_factory=Path.cwd)
    build: Callable[[Path, str, Path], BuiltImage] = field(default=build_image)
    sleep: Callable[[float], None] = field(default=time.sleep)
    poll_interval: float = POLL_INTERVAL
    max_attempts: int = MAX_WAIT_ATTEMPTS

    def preview(self, org: Organization, project: Project, deployment_type: DeploymentType) -> DeploymentPreview:
        preview = self.client.preview_deployment(org.id, project.id, deployment_type.value)
        render_preview(preview)
        return preview

    def run(self, org: Organization, project: Project, deployment_type: DeploymentType) -> bool:
        """Preview, confirm and execute an operation, then wait for it.

        Returns:
            False if the user didn't confirm, True otherwise.

        Raises:
            BuildError: If building the image fails.
            APIError: If Forge rejects the operation.
        """
        self.preview(org, project, deployment_type)
        if not confirm(self.reader, f"Do you want to {deployment_type.verb} project '{project.name}'?"):
            console.print(f"{deployment_type.verb.capitalize()} cancelled.")
            return False

        baseline = self._current(project.id, deployment_type.target_env)

        if deployment_type.builds_image:
            self._upload(org, project, force=deployment_type is DeploymentType.FORCE_DEPLOY)
        else:
            self.client.post_deployment(org.id, project.id, deployment_type.value)

        console.print(f"[green]{deployment_type.verb.capitalize()} of project '{project.name}' started.[/green]")
        self.wait(project.id, deployment_type, baseline)
        return True

    def _upload(self, org: Organization, project: Project, force: bool) -> None:
        with tempfile.TemporaryDirectory(prefix="world-forge-") as tmp:
            with console.status("Building image..."):
                image = self.build(self.project_root, project.slug, Path(tmp))
            console.print(f"Built image {image.tag}")
            with console.status("Uploading image..."), open(image.tarball, "rb") as f:
                self.client.upload_deployment(org.id, project.id, image.commit_hash, f, force=force)

    def _current(self, project_id: str, env: str) -> DeploymentInfo | None:
        try:
            return self.client.get_deployments(project_id).get(env)
        except APIError as e:
            logger.debug(f"Failed to get deployment status: {e.message}")
            return None

    def wait(
        self,
        project_id: str,
        deployment_type: DeploymentType,
        baseline: DeploymentInfo | None = None,
    ) -> DeploymentInfo | None:
        """Poll until the target environment reports a new, finished deployment.

        Args:
            project_id: The project being deployed.
            deployment_type: The operation that was started.
            baseline: The environment's deployment before the operation started.

        Returns:
            The finished deployment, or None when waiting gave up.
        """
        env = deployment_type.target_env
        with console.status(f"Waiting for {deployment_type.verb} to complete..."):
            for attempt in range(1, self.max_attempts + 1):
                self.sleep(self.poll_interval)
                info = self._current(project_id, env)
                logger.debug(f"Poll {attempt}/{self.max_attempts}: {info}")
                if info is None or info == baseline or not info.is_finished:
                    continue
                print_deployment_info(info)
                if info.status == DeployStatus.FAILED.value:
                    console.print(f"[red]{deployment_type.verb.capitalize()} failed![/red]")
                else:
                    console.print(f"[green]{deployment_type.verb.capitalize()} completed![/green]")
                return info

        console.print(
            f"[yellow]Still waiting for {deployment_type.verb} to finish. "
            "Run 'world status' to check on it later.[/yellow]"
        )
        return None
