"""Interactive organization and project resolution.

Used when a command needs an organization or project but none is selected.
What happens depends on how many exist and whether creating one is allowed:

================  ===========================  ==========================
count             creation allowed             existing only
================  ===========================  ==========================
none              offer to create one          guidance, cancelled
one               ``Y`` / ``n`` / ``c``        selected silently
many              numbered list with ``c``     numbered list
================  ===========================  ==========================

Projects can only be created from a world project root, so outside of one the
``c`` choice is not offered.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import CreationCancelledError, SelectionCancelledError
from .logging import console, get_logger
from .models import Organization, Project
from .organizations import OrganizationResolver
from .projects import ProjectResolver
from .prompts import prompt_choice

logger = get_logger(__name__)


@dataclass
class InitFlow:
    """Walks the user through picking (or creating) an organization and project."""

    organizations: OrganizationResolver
    projects: ProjectResolver

    def resolve_organization(self, allow_create: bool) -> Organization:
        orgs = self.organizations.list_all()
        logger.debug(f"Found {len(orgs)} organizations")

        if not orgs:
            if not allow_create:
                console.print("You don't belong to any organization yet.")
                console.print("Create one with 'world organization create'.")
                raise SelectionCancelledError("No organization available")
            console.print("You don't belong to any organization yet.")
            answer = prompt_choice(
                self.organizations.reader,
                "Would you like to create one?",
                ["Y", "y", "n", "N"],
                "Y",
            )
            if answer in ("n", "N"):
                raise CreationCancelledError("Organization creation cancelled")
            return self.organizations.create()

        if len(orgs) == 1 and not allow_create:
            self.organizations.persist(orgs[0])
            return orgs[0]

        org = self.organizations.select(orgs, allow_create=allow_create)
        if org is None:
            raise SelectionCancelledError("No organization selected")
        return org

    def resolve_project(self, org_id: str, allow_create: bool) -> Project:
        projects = self.projects.list_all(org_id)
        logger.debug(f"Found {len(projects)} projects in organization {org_id}")
        can_create = allow_create and self.projects.in_world_root

        if not projects:
            console.print("No projects found in this organization.")
            if not allow_create:
                console.print("Create one with 'world project create' from your World project root.")
                raise SelectionCancelledError("No project available")
            if not can_create:
                console.print("Run 'world project create' from the root directory of your World project.")
                raise CreationCancelledError("Project creation requires a World project root")
            answer = prompt_choice(
                self.projects.reader,
                "Would you like to create one?",
                ["Y", "y", "n", "N"],
                "Y",
            )
            if answer in ("n", "N"):
                raise CreationCancelledError("Project creation cancelled")
            return self.projects.create(org_id)

        if len(projects) == 1 and not allow_create:
            self.projects.persist(org_id, projects[0])
            return projects[0]

        project = self.projects.select(org_id, projects, allow_create=can_create)
        if project is None:
            raise SelectionCancelledError("No project selected")
        return project
