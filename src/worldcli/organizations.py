"""Organization resolver: list, get, select, create and switch organizations."""

from __future__ import annotations

from dataclasses import dataclass

from .client import ForgeClient
from .config import Config, save_config_quietly
from .errors import NotFoundError, SelectionCancelledError, ValidationFailedError
from .logging import console, get_logger
from .models import Organization
from .prompts import InputReader, match_number_or_slug, prompt_choice
from .slug import ORGANIZATION_SLUG_MAX, ORGANIZATION_SLUG_MIN
from .validate import validate_email
from .wizard import CreationWizard

logger = get_logger(__name__)

ROLES = ("admin", "member", "owner", "none")


def validate_role(role: str) -> str:
    role = role.strip().lower()
    if role not in ROLES:
        raise ValidationFailedError(f"Invalid role '{role}'. Available: {', '.join(ROLES)}")
    return role


@dataclass
class OrganizationResolver:
    """Resolves the organization a command works with."""

    config: Config
    client: ForgeClient
    reader: InputReader

    def list_all(self) -> list[Organization]:
        return self.client.get_organizations()

    def get(self, org_id: str) -> Organization:
        return self.client.get_organization(org_id)

    def persist(self, org: Organization) -> None:
        """Make ``org`` the selected organization and save the config.

        Switching to a different organization drops the selected project,
        which belongs to the previous one.
        """
        if self.config.organization_id != org.id:
            self.config.project_id = ""
        self.config.organization_id = org.id
        save_config_quietly(self.config)
        logger.debug(f"Selected organization {org.slug} ({org.id})")

    def select(self, orgs: list[Organization], allow_create: bool = False) -> Organization | None:
        """Let the user pick one of ``orgs`` and persist the choice.

        Args:
            orgs: The organizations to choose from.
            allow_create: Offer ``c`` to create a new organization instead.

        Returns:
            The chosen or created organization, or None when ``orgs`` is empty.

        Raises:
            SelectionCancelledError: If the user declines or quits.
        """
        if not orgs:
            return None
        if len(orgs) == 1:
            return self._select_single(orgs[0], allow_create)
        return self._select_from_list(orgs, allow_create)

    def _select_single(self, org: Organization, allow_create: bool) -> Organization:
        choices = ["Y", "y", "n", "N"] + (["c"] if allow_create else [])
        console.print(f"Found organization: [bold]{org.name}[/bold] ({org.slug})")
        answer = prompt_choice(self.reader, "Select this organization?", choices, "Y")
        if answer in ("n", "N"):
            raise SelectionCancelledError("Organization selection cancelled")
        if answer == "c":
            return self.create()
        self.persist(org)
        return org

    def _select_from_list(self, orgs: list[Organization], allow_create: bool) -> Organization:
        console.print("\n[bold]Available organizations:[/bold]")
        for i, org in enumerate(orgs, start=1):
            console.print(f"  {i}. {org.name} ({org.slug})")

        options = "'q' to quit" + (", 'c' to create a new one" if allow_create else "")
        while True:
            answer = self.reader.prompt(f"Enter organization number or slug ({options})", "")
            if answer == "q":
                raise SelectionCancelledError("Organization selection cancelled")
            if answer == "c" and allow_create:
                return self.create()

            chosen = match_number_or_slug(orgs, answer)
            if chosen is not None:
                self.persist(chosen)
                return chosen
            console.print("Invalid selection, please try again.")

    def create(self) -> Organization:
        """Run the creation wizard and select the new organization.

        Raises:
            CreationCancelledError: If the user declines the confirmation.
        """
        wizard: CreationWizard[Organization] = CreationWizard(
            reader=self.reader,
            entity="organization",
            slug_min=ORGANIZATION_SLUG_MIN,
            slug_max=ORGANIZATION_SLUG_MAX,
            submit=lambda name, slug: self.client.create_organization(name, slug),
        )
        org = wizard.run()
        console.print(f"[green]Organization '{org.name}' ({org.slug}) created.[/green]")
        self.persist(org)
        return org

    def switch(self, slug: str) -> Organization:
        """Select the organization with the given slug.

        Raises:
            NotFoundError: If no organization has that slug.
        """
        for org in self.list_all():
            if org.slug == slug:
                self.persist(org)
                return org
        raise NotFoundError(f"Organization not found with slug: {slug}")

    def invite(self, org_id: str, email: str, role: str) -> None:
        self.client.invite_user(org_id, validate_email(email), validate_role(role))

    def update_role(self, org_id: str, email: str, role: str) -> None:
        self.client.update_user_role(org_id, validate_email(email), validate_role(role))
