"""Project resolver: list, get, select, create, update, delete and switch projects."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path

from .client import ForgeClient
from .config import Config, save_config_quietly
from .errors import (
    NotFoundError,
    PreconditionViolatedError,
    SelectionCancelledError,
    ValidationFailedError,
)
from .logging import console, get_logger
from .models import NIL_UUID, Project, ProjectConfig
from .prompts import InputReader, match_number_or_slug, prompt_choice
from .repo import is_world_project_root, read_forge_project_name
from .slug import PROJECT_SLUG_MAX, PROJECT_SLUG_MIN
from .validate import ensure_https, validate_url
from .wizard import CreationWizard

logger = get_logger(__name__)

DEFAULT_TICK_RATE = 1


def parse_region_selection(answer: str, regions: list[str]) -> list[str]:
    """Turn a comma-separated list of numbers or region names into regions.

    Raises:
        ValidationFailedError: If an entry matches no region or nothing is chosen.
    """
    chosen: list[str] = []
    for part in answer.split(","):
        part = part.strip()
        if not part:
            continue
        if part.isdigit() and 1 <= int(part) <= len(regions):
            region = regions[int(part) - 1]
        elif part in regions:
            region = part
        else:
            raise ValidationFailedError(f"Unknown region: {part}")
        if region not in chosen:
            chosen.append(region)
    if not chosen:
        raise ValidationFailedError("Choose at least one region")
    return chosen


@dataclass
class ProjectResolver:
    """Resolves the project a command works with.

    Attributes:
        config: Loaded config; the ``curr_repo_*`` fields describe the working directory.
        client: Forge API client.
        reader: Where answers come from.
        cwd: The working directory, checked for a world project root.
    """

    config: Config
    client: ForgeClient
    reader: InputReader
    cwd: Path = field(default_factory=Path.cwd)

    @property
    def in_world_root(self) -> bool:
        """True when the cwd is a world project root inside a git repository."""
        return bool(self.config.curr_repo_url) and is_world_project_root(self.cwd)

    def list_all(self, org_id: str) -> list[Project]:
        return self.client.get_projects(org_id)

    def get(self, org_id: str, project_id: str) -> Project:
        return self.client.get_project(org_id, project_id)

    def persist(self, org_id: str, project: Project) -> None:
        """Make ``project`` the selected project and remember it for this repo."""
        self.config.organization_id = org_id
        self.config.project_id = project.id
        self.config.curr_project_name = project.name
        if self.config.curr_repo_url:
            self.config.add_known_project(
                project_id=project.id,
                project_name=project.name,
                organization_id=org_id,
                repo_url=self.config.curr_repo_url,
                repo_path=self.config.curr_repo_path,
            )
        save_config_quietly(self.config)
        logger.debug(f"Selected project {project.slug} ({project.id})")

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    def select(self, org_id: str, projects: list[Project], allow_create: bool = False) -> Project | None:
        """Let the user pick one of ``projects`` and persist the choice.

        Returns:
            The chosen or created project, or None when ``projects`` is empty.

        Raises:
            SelectionCancelledError: If the user declines or quits.
        """
        if not projects:
            return None
        if len(projects) == 1:
            return self._select_single(org_id, projects[0], allow_create)
        return self._select_from_list(org_id, projects, allow_create)

    def _select_single(self, org_id: str, project: Project, allow_create: bool) -> Project:
        choices = ["Y", "y", "n", "N"] + (["c"] if allow_create else [])
        console.print(f"Found project: [bold]{project.name}[/bold] ({project.slug})")
        answer = prompt_choice(self.reader, "Select this project?", choices, "Y")
        if answer in ("n", "N"):
            raise SelectionCancelledError("Project selection cancelled")
        if answer == "c":
            return self.create(org_id)
        self.persist(org_id, project)
        return project

    def _select_from_list(self, org_id: str, projects: list[Project], allow_create: bool) -> Project:
        console.print("\n[bold]Available projects:[/bold]")
        for i, project in enumerate(projects, start=1):
            console.print(f"  {i}. {project.name} ({project.slug})")

        options = "'q' to quit" + (", 'c' to create a new one" if allow_create else "")
        while True:
            answer = self.reader.prompt(f"Enter project number or slug ({options})", "")
            if answer == "q":
                raise SelectionCancelledError("Project selection cancelled")
            if answer == "c" and allow_create:
                return self.create(org_id)

            chosen = match_number_or_slug(projects, answer)
            if chosen is not None:
                self.persist(org_id, chosen)
                return chosen
            console.print("Invalid selection, please try again.")

    def switch(self, org_id: str, slug: str) -> Project:
        """Select the project with the given slug.

        Raises:
            NotFoundError: If no project in the organization has that slug.
        """
        for project in self.list_all(org_id):
            if project.slug == slug:
                self.persist(org_id, project)
                return project
        raise NotFoundError(f"Project not found with slug: {slug}")

    # -------------------------------------------------------------------------
    # Create / update / delete
    # -------------------------------------------------------------------------

    def _require_world_root(self) -> None:
        if not self.config.curr_repo_url:
            raise PreconditionViolatedError(
                "Not in a git repository with an 'origin' remote",
                hint="Run this command from your game's git repository.",
            )
        if not is_world_project_root(self.cwd):
            raise PreconditionViolatedError(
                "Not in a World project root (world.toml and cardinal/ are required)",
                hint="Run this command from the root directory of your World project.",
            )

    def _ask_repo_url(self, default: str) -> str:
        while True:
            answer = ensure_https(self.reader.prompt("Enter repository URL", default))
            try:
                return validate_url(answer)
            except ValidationFailedError as e:
                console.print(f"[red]{e.message}[/red]")

    def _ask_avatar_url(self, default: str) -> str:
        while True:
            answer = self.reader.prompt("Enter avatar URL (optional)", default)
            if not answer:
                return ""
            try:
                return validate_url(answer)
            except ValidationFailedError as e:
                console.print(f"[red]{e.message}[/red]")

    def _ask_regions(self, org_id: str, project_id: str, current: list[str]) -> list[str]:
        regions = self.client.get_regions(org_id, project_id)
        if not regions:
            raise PreconditionViolatedError("No regions are available for deployment")

        console.print("\n[bold]Available regions:[/bold]")
        for i, region in enumerate(regions, start=1):
            console.print(f"  {i}. {region}")

        default = ",".join(r for r in current if r in regions) or "1"
        while True:
            answer = self.reader.prompt("Choose regions (comma-separated numbers or names)", default)
            try:
                return parse_region_selection(answer, regions)
            except ValidationFailedError as e:
                console.print(f"[red]{e.message}[/red]")

    def _collect_details(self, org_id: str, project: Project) -> Project:
        """Ask for the repository, region and avatar settings of ``project``."""
        project.repo_url = self._ask_repo_url(project.repo_url or ensure_https(self.config.curr_repo_url))
        project.repo_path = self.reader.prompt("Enter path to the World project in the repository", project.repo_path)
        project.repo_token = self.reader.prompt(
            "Enter repository access token (leave empty for public repositories)", project.repo_token
        )
        project.config.regions = self._ask_regions(org_id, project.id or NIL_UUID, project.config.regions)
        project.avatar_url = self._ask_avatar_url(project.avatar_url)
        return project

    def create(self, org_id: str) -> Project:
        """Create a project for the repository in the working directory.

        Raises:
            PreconditionViolatedError: If the cwd is not a world project root in a git repo.
            CreationCancelledError: If the user declines the confirmation.
        """
        self._require_world_root()

        draft = Project(
            id="",
            org_id=org_id,
            repo_path=self.config.curr_repo_path,
            config=ProjectConfig(tick_rate=DEFAULT_TICK_RATE),
        )
        self._collect_details(org_id, draft)

        def submit(name: str, slug: str) -> Project:
            draft.name = name
            draft.slug = slug
            return self.client.create_project(org_id, draft)

        wizard: CreationWizard[Project] = CreationWizard(
            reader=self.reader,
            entity="project",
            slug_min=PROJECT_SLUG_MIN,
            slug_max=PROJECT_SLUG_MAX,
            submit=submit,
            check_slug=lambda slug: self.client.check_project_slug(org_id, NIL_UUID, slug),
            describe=lambda: _describe(draft),
            default_name=read_forge_project_name(self.cwd),
        )
        project = wizard.run()

        console.print(f"[green]Project '{project.name}' ({project.slug}) created.[/green]")
        if project.deploy_secret:
            console.print("\n[bold]Deploy secret[/bold] (shown only once, store it somewhere safe):")
            console.print(project.deploy_secret, markup=False)
        self.persist(org_id, project)
        return project

    def update(self, org_id: str, project: Project) -> Project:
        """Re-run the project wizard with the current values as defaults."""
        draft = Project(
            id=project.id,
            org_id=org_id,
            name=project.name,
            slug=project.slug,
            repo_url=project.repo_url,
            repo_path=project.repo_path,
            repo_token=project.repo_token,
            avatar_url=project.avatar_url,
            config=replace(project.config, regions=list(project.config.regions)),
        )
        self._collect_details(org_id, draft)

        def check_slug(slug: str) -> None:
            if slug != project.slug:
                self.client.check_project_slug(org_id, project.id, slug)

        def submit(name: str, slug: str) -> Project:
            draft.name = name
            draft.slug = slug
            return self.client.update_project(org_id, project.id, draft)

        wizard: CreationWizard[Project] = CreationWizard(
            reader=self.reader,
            entity="project",
            slug_min=PROJECT_SLUG_MIN,
            slug_max=PROJECT_SLUG_MAX,
            submit=submit,
            check_slug=check_slug,
            describe=lambda: _describe(draft),
            default_name=project.name,
            default_slug=project.slug,
            action="Update",
        )
        updated = wizard.run()
        console.print(f"[green]Project '{updated.name}' ({updated.slug}) updated.[/green]")
        self.persist(org_id, updated)
        return updated

    def delete(self, org_id: str, project: Project) -> None:
        """Delete ``project`` after the user types its slug.

        Raises:
            SelectionCancelledError: If the typed slug doesn't match.
        """
        console.print(f"[bold red]This permanently deletes project '{project.name}' ({project.slug}).[/bold red]")
        answer = self.reader.prompt(f"Type the project slug '{project.slug}' to confirm", "")
        if answer != project.slug:
            raise SelectionCancelledError("Project deletion cancelled")

        self.client.delete_project(org_id, project.id)
        if self.config.project_id == project.id:
            self.config.project_id = ""
            self.config.curr_project_name = ""
        self.config.remove_known_projects(project.id)
        save_config_quietly(self.config)
        console.print(f"[green]Project '{project.name}' deleted.[/green]")


def _describe(project: Project) -> list[str]:
    return [
        f"Repository: {project.repo_url}",
        f"Path: {project.repo_path or '(root)'}",
        f"Regions: {', '.join(project.config.regions)}",
    ]
