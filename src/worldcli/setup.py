"""Per-command setup: login, organization and project gates.

Every command declares what it needs with a ``LoginRequirement`` and two
``StepRequirement`` values. ``CommandSetup.run`` checks them in order
login -> organization -> project and returns a ``CommandState``; the first
failing gate raises and the remaining gates don't run.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from .client import ForgeClient
from .config import Config, save_config_quietly
from .errors import APIError, NotLoggedInError, NotSelectedError, PreconditionViolatedError, TokenExpiredError
from .init_flow import InitFlow
from .logging import get_logger
from .models import Organization, Project, User

logger = get_logger(__name__)


class LoginRequirement(Enum):
    IGNORE_LOGIN = "ignore_login"
    NEED_LOGIN = "need_login"


class StepRequirement(Enum):
    """What a command needs from the organization or project gate.

    IGNORE: nothing, no network call.
    NEED_ID_ONLY: a selected id, fetched once; never interactive.
    MUST_NOT_EXIST: no id may be selected.
    NEED_DATA: a selected entity; select or create one interactively if needed.
    NEED_EXISTING_DATA: like NEED_DATA but never offers creation.
    """

    IGNORE = "ignore"
    NEED_ID_ONLY = "need_id_only"
    MUST_NOT_EXIST = "must_not_exist"
    NEED_DATA = "need_data"
    NEED_EXISTING_DATA = "need_existing_data"


INTERACTIVE = (StepRequirement.NEED_DATA, StepRequirement.NEED_EXISTING_DATA)


@dataclass
class CommandState:
    """What a command gets to work with. Built per invocation, never saved."""

    logged_in: bool = False
    curr_repo_known: bool = False
    user: User | None = None
    organization: Organization | None = None
    project: Project | None = None

    def require_organization(self) -> Organization:
        if self.organization is None:
            raise NotSelectedError("No organization selected", hint="Select one with 'world organization switch'.")
        return self.organization

    def require_project(self) -> Project:
        if self.project is None:
            raise NotSelectedError("No project selected", hint="Select one with 'world project switch'.")
        return self.project


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CommandSetup:
    """Runs the setup gates for a command.

    Attributes:
        config: Loaded config. Only interactive selection or creation changes it.
        client: Forge API client.
        init_flow: Interactive resolution used by NEED_DATA and NEED_EXISTING_DATA.
        clock: Current time, used to check token expiry.
    """

    config: Config
    client: ForgeClient
    init_flow: InitFlow
    clock: Callable[[], datetime] = field(default=_utcnow)

    def run(
        self,
        login: LoginRequirement,
        organization: StepRequirement,
        project: StepRequirement,
    ) -> CommandState:
        """Check the requirements and resolve the command state.

        Raises:
            NotLoggedInError: Login needed but no token stored.
            TokenExpiredError: Login needed but the token has expired.
            NotSelectedError: An id is needed but none is selected.
            PreconditionViolatedError: MUST_NOT_EXIST with an id selected.
            NotFoundError: The selected organization or project no longer exists.
            SelectionCancelledError: The user declined an interactive selection.
            CreationCancelledError: The user declined an interactive creation.
        """
        state = CommandState()
        self._check_login(login, state)

        if organization is not StepRequirement.IGNORE and project is not StepRequirement.IGNORE:
            self._lookup_repo_project(state)
        org_id, project_id = self._resolve_known_project(state)

        self._check_organization(organization, org_id, state)
        if state.organization is not None and state.organization.id != org_id:
            # A different organization was picked interactively, its persisted
            # project (if any) is the one that applies now.
            project_id = self.config.project_id
            org_id = state.organization.id

        self._check_project(project, org_id, project_id, state)
        return state

    # -------------------------------------------------------------------------
    # Gates
    # -------------------------------------------------------------------------

    def _check_login(self, login: LoginRequirement, state: CommandState) -> None:
        credential = self.config.credential
        if login is LoginRequirement.IGNORE_LOGIN:
            state.logged_in = credential.is_valid(self.clock())
            return

        if not credential.token:
            raise NotLoggedInError()
        if credential.is_expired(self.clock()):
            raise TokenExpiredError()

        state.user = self.client.get_user()
        state.logged_in = True

    def _resolve_known_project(self, state: CommandState) -> tuple[str, str]:
        """Find the effective org and project ids, preferring the project known for the cwd."""
        org_id = self.config.organization_id
        project_id = self.config.project_id

        known = self.config.find_known_project(
            self.config.curr_repo_url,
            self.config.curr_repo_path,
            organization_id=org_id or None,
        )
        if known is not None:
            logger.debug(f"Using known project {known.project_name or known.project_id} for this directory")
            state.curr_repo_known = True
            return known.organization_id, known.project_id
        return org_id, project_id

    def _lookup_repo_project(self, state: CommandState) -> None:
        """Ask World Forge which project the current repository belongs to.

        Runs only for a logged-in user in a repository that has no known project
        yet. A hit is remembered in ``known_projects``; the selected organization
        and project stay as they are. A failed lookup is not fatal.
        """
        repo_url = self.config.curr_repo_url
        repo_path = self.config.curr_repo_path
        if not repo_url or not state.logged_in:
            return
        if self.config.find_known_project(repo_url, repo_path) is not None:
            return

        try:
            found = self.client.lookup_project(repo_url, repo_path)
        except APIError as e:
            logger.warning(f"Failed to look up the World Forge project for {repo_url}: {e.message}")
            return
        if found is None:
            logger.debug(f"No World Forge project uses {repo_url} ({repo_path or 'root'})")
            return

        logger.debug(f"Repository belongs to project {found.name} ({found.id})")
        self.config.add_known_project(found.id, found.name, found.org_id, repo_url, repo_path)
        save_config_quietly(self.config)

    def _require_login_for_prompt(self, state: CommandState) -> None:
        if not state.logged_in:
            raise NotLoggedInError()

    def _check_organization(self, requirement: StepRequirement, org_id: str, state: CommandState) -> None:
        if requirement is StepRequirement.IGNORE:
            return

        if requirement is StepRequirement.MUST_NOT_EXIST:
            if org_id:
                raise PreconditionViolatedError("An organization is already selected")
            return

        if requirement is StepRequirement.NEED_ID_ONLY:
            if not org_id:
                raise NotSelectedError(
                    "No organization selected",
                    hint="Select one with 'world organization switch'.",
                )
            state.organization = self.client.get_organization(org_id)
            return

        if org_id:
            state.organization = self.client.get_organization(org_id)
            return

        self._require_login_for_prompt(state)
        state.organization = self.init_flow.resolve_organization(
            allow_create=requirement is StepRequirement.NEED_DATA,
        )

    def _check_project(
        self,
        requirement: StepRequirement,
        org_id: str,
        project_id: str,
        state: CommandState,
    ) -> None:
        if requirement is StepRequirement.IGNORE:
            return

        if requirement is StepRequirement.MUST_NOT_EXIST:
            if project_id:
                raise PreconditionViolatedError("A project is already selected")
            return

        if not org_id:
            raise NotSelectedError(
                "No organization selected",
                hint="Select one with 'world organization switch'.",
            )

        if requirement is StepRequirement.NEED_ID_ONLY:
            if not project_id:
                raise NotSelectedError(
                    "No project selected",
                    hint="Select one with 'world project switch'.",
                )
            state.project = self.client.get_project(org_id, project_id)
            return

        if project_id:
            state.project = self.client.get_project(org_id, project_id)
            return

        self._require_login_for_prompt(state)
        state.project = self.init_flow.resolve_project(
            org_id,
            allow_create=requirement is StepRequirement.NEED_DATA,
        )
