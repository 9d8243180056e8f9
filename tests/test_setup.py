"""Tests for the per-command setup gates."""

from __future__ import annotations

import json
from datetime import timedelta

import httpx
import pytest
from conftest import NOW, FakeForge, ScriptedReader, api_error, envelope, make_setup, org_data, project_data

from worldcli.config import Config, Credential, KnownProject
from worldcli.errors import (
    NotFoundError,
    NotLoggedInError,
    NotSelectedError,
    PreconditionViolatedError,
    SelectionCancelledError,
    TokenExpiredError,
)
from worldcli.models import Organization, Project
from worldcli.setup import CommandState, LoginRequirement, StepRequirement

IGNORE = StepRequirement.IGNORE
NEED_ID_ONLY = StepRequirement.NEED_ID_ONLY
MUST_NOT_EXIST = StepRequirement.MUST_NOT_EXIST
NEED_DATA = StepRequirement.NEED_DATA
NEED_EXISTING_DATA = StepRequirement.NEED_EXISTING_DATA


class TestLoginGate:
    """Tests for the login gate."""

    def test_ignore_login_makes_no_requests(self, config: Config, forge: FakeForge) -> None:
        """Test that IGNORE_LOGIN only checks the stored token."""
        state = make_setup(config, forge).run(LoginRequirement.IGNORE_LOGIN, IGNORE, IGNORE)

        assert state.logged_in is True
        assert state.user is None
        assert forge.requests == []

    def test_ignore_login_reports_expired_token(self, config: Config, forge: FakeForge) -> None:
        """Test that an expired token counts as logged out."""
        config.credential.token_expires_at = NOW - timedelta(seconds=1)
        state = make_setup(config, forge).run(LoginRequirement.IGNORE_LOGIN, IGNORE, IGNORE)

        assert state.logged_in is False

    def test_need_login_without_token(self, config: Config, forge: FakeForge) -> None:
        """Test that NEED_LOGIN fails when no token is stored."""
        config.credential = Credential()
        with pytest.raises(NotLoggedInError):
            make_setup(config, forge).run(LoginRequirement.NEED_LOGIN, IGNORE, IGNORE)
        assert forge.requests == []

    def test_expired_token_fails_before_other_gates(self, config: Config, forge: FakeForge) -> None:
        """Test that an expired token fails before the organization gate runs."""
        config.credential.token_expires_at = NOW - timedelta(minutes=5)
        config.organization_id = "org-1"

        with pytest.raises(TokenExpiredError):
            make_setup(config, forge).run(LoginRequirement.NEED_LOGIN, NEED_ID_ONLY, NEED_ID_ONLY)
        assert forge.requests == []

    def test_token_without_expiry_is_expired(self, config: Config, forge: FakeForge) -> None:
        """Test that a token with no expiry is treated as expired."""
        config.credential.token_expires_at = None
        with pytest.raises(TokenExpiredError):
            make_setup(config, forge).run(LoginRequirement.NEED_LOGIN, IGNORE, IGNORE)

    def test_need_login_fetches_user_once(self, config: Config, forge: FakeForge) -> None:
        """Test that NEED_LOGIN loads the user with a single request."""
        forge.add("GET", "/api/user", envelope({"id": "user-1", "name": "Jane", "email": "jane@example.com"}))

        state = make_setup(config, forge).run(LoginRequirement.NEED_LOGIN, IGNORE, IGNORE)

        assert state.logged_in is True
        assert state.user is not None
        assert state.user.name == "Jane"
        assert len(forge.requests) == 1


class TestOrganizationGate:
    """Tests for the organization gate."""

    def test_ignore_never_touches_network(self, config: Config, forge: FakeForge) -> None:
        """Test that IGNORE makes no request even with an id selected."""
        config.organization_id = "org-1"
        state = make_setup(config, forge).run(LoginRequirement.IGNORE_LOGIN, IGNORE, IGNORE)

        assert state.organization is None
        assert forge.requests == []

    def test_need_id_only_without_id(self, config: Config, forge: FakeForge) -> None:
        """Test that NEED_ID_ONLY fails without a request when nothing is selected."""
        with pytest.raises(NotSelectedError) as exc_info:
            make_setup(config, forge).run(LoginRequirement.IGNORE_LOGIN, NEED_ID_ONLY, IGNORE)

        assert isinstance(exc_info.value, PreconditionViolatedError)
        assert forge.requests == []

    def test_need_id_only_fetches_once(self, config: Config, forge: FakeForge) -> None:
        """Test that NEED_ID_ONLY with an id performs exactly one fetch."""
        config.organization_id = "org-1"
        forge.add("GET", "/api/organization/org-1", envelope(org_data()))

        state = make_setup(config, forge).run(LoginRequirement.IGNORE_LOGIN, NEED_ID_ONLY, IGNORE)

        assert state.organization is not None
        assert state.organization.slug == "studio"
        assert len(forge.requests) == 1

    def test_need_id_only_missing_organization(self, config: Config, forge: FakeForge) -> None:
        """Test that a 404 for the selected organization becomes NotFoundError."""
        config.organization_id = "gone"
        with pytest.raises(NotFoundError):
            make_setup(config, forge).run(LoginRequirement.IGNORE_LOGIN, NEED_ID_ONLY, IGNORE)

    @pytest.mark.parametrize("org_id, should_fail", [("", False), ("org-1", True)])
    def test_must_not_exist(self, config: Config, forge: FakeForge, org_id: str, should_fail: bool) -> None:
        """Test that MUST_NOT_EXIST fails exactly when an id is selected."""
        config.organization_id = org_id
        setup = make_setup(config, forge)

        if should_fail:
            with pytest.raises(PreconditionViolatedError):
                setup.run(LoginRequirement.IGNORE_LOGIN, MUST_NOT_EXIST, IGNORE)
        else:
            setup.run(LoginRequirement.IGNORE_LOGIN, MUST_NOT_EXIST, IGNORE)
        assert forge.requests == []

    def test_interactive_requires_login(self, config: Config, forge: FakeForge) -> None:
        """Test that interactive selection is refused without a valid login."""
        config.credential = Credential()
        with pytest.raises(NotLoggedInError):
            make_setup(config, forge).run(LoginRequirement.IGNORE_LOGIN, NEED_DATA, IGNORE)
        assert forge.requests == []

    def test_need_data_selects_single_organization(self, config: Config, forge: FakeForge) -> None:
        """Test that NEED_DATA with one organization asks Y/n/c and persists the choice."""
        forge.add("GET", "/api/organization", envelope([org_data()]))
        reader = ScriptedReader(["Y"])

        state = make_setup(config, forge, reader).run(LoginRequirement.IGNORE_LOGIN, NEED_DATA, IGNORE)

        assert state.organization is not None
        assert config.organization_id == "org-1"
        assert "(Y/y/n/N/c)" in reader.prompts[0]
        assert config.path is not None and config.path.exists()

    def test_need_existing_data_selects_single_silently(self, config: Config, forge: FakeForge) -> None:
        """Test that NEED_EXISTING_DATA with one organization picks it without asking."""
        forge.add("GET", "/api/organization", envelope([org_data()]))
        reader = ScriptedReader()

        state = make_setup(config, forge, reader).run(LoginRequirement.IGNORE_LOGIN, NEED_EXISTING_DATA, IGNORE)

        assert state.organization is not None
        assert reader.prompts == []

    def test_need_existing_data_without_organizations(self, config: Config, forge: FakeForge) -> None:
        """Test that NEED_EXISTING_DATA with no organizations cancels."""
        forge.add("GET", "/api/organization", envelope([]))
        with pytest.raises(SelectionCancelledError):
            make_setup(config, forge).run(LoginRequirement.IGNORE_LOGIN, NEED_EXISTING_DATA, IGNORE)


class TestProjectGate:
    """Tests for the project gate."""

    def test_project_needs_organization(self, config: Config, forge: FakeForge) -> None:
        """Test that a project requirement without an organization fails."""
        config.project_id = "proj-1"
        with pytest.raises(NotSelectedError):
            make_setup(config, forge).run(LoginRequirement.IGNORE_LOGIN, IGNORE, NEED_ID_ONLY)
        assert forge.requests == []

    def test_need_id_only_without_project(self, config: Config, forge: FakeForge) -> None:
        """Test that NEED_ID_ONLY fails without a request when no project is selected."""
        config.organization_id = "org-1"
        with pytest.raises(NotSelectedError):
            make_setup(config, forge).run(LoginRequirement.IGNORE_LOGIN, IGNORE, NEED_ID_ONLY)
        assert forge.requests == []

    def test_need_id_only_fetches_project_once(self, config: Config, forge: FakeForge) -> None:
        """Test that NEED_ID_ONLY with ids fetches the project exactly once."""
        config.organization_id = "org-1"
        config.project_id = "proj-1"
        forge.add("GET", "/api/organization/org-1/project/proj-1", envelope(project_data()))

        state = make_setup(config, forge).run(LoginRequirement.IGNORE_LOGIN, IGNORE, NEED_ID_ONLY)

        assert state.project is not None
        assert state.project.name == "My Game"
        assert len(forge.requests) == 1

    def test_ignore_never_touches_network(self, config: Config, forge: FakeForge) -> None:
        """Test that IGNORE makes no request even with a project selected."""
        config.organization_id = "org-1"
        config.project_id = "proj-1"
        state = make_setup(config, forge).run(LoginRequirement.IGNORE_LOGIN, IGNORE, IGNORE)

        assert state.project is None
        assert forge.requests == []

    @pytest.mark.parametrize("project_id, should_fail", [("", False), ("proj-1", True)])
    def test_must_not_exist(self, config: Config, forge: FakeForge, project_id: str, should_fail: bool) -> None:
        """Test that MUST_NOT_EXIST for the project fails exactly when a project is selected."""
        config.project_id = project_id
        setup = make_setup(config, forge)

        if should_fail:
            with pytest.raises(PreconditionViolatedError):
                setup.run(LoginRequirement.IGNORE_LOGIN, IGNORE, MUST_NOT_EXIST)
        else:
            state = setup.run(LoginRequirement.IGNORE_LOGIN, IGNORE, MUST_NOT_EXIST)
            assert state.project is None
        assert forge.requests == []


class TestKnownProject:
    """Tests for picking up the project known for the working directory."""

    def _remember(self, config: Config, org_id: str = "org-1") -> None:
        config.curr_repo_url = "https://github.com/acme/game"
        config.curr_repo_path = "game"
        config.known_projects.append(
            KnownProject(
                repo_url="https://github.com/acme/game",
                repo_path="game",
                organization_id=org_id,
                project_id="proj-1",
                project_name="My Game",
            )
        )

    def test_known_project_resolves_without_prompt(self, config: Config, forge: FakeForge) -> None:
        """Test that a known project is used even though no project id is stored."""
        self._remember(config)
        forge.add("GET", "/api/organization/org-1", envelope(org_data()))
        forge.add("GET", "/api/organization/org-1/project/proj-1", envelope(project_data()))
        reader = ScriptedReader()

        state = make_setup(config, forge, reader).run(LoginRequirement.IGNORE_LOGIN, NEED_DATA, NEED_DATA)

        assert state.curr_repo_known is True
        assert state.project is not None
        assert state.project.id == "proj-1"
        assert reader.prompts == []
        assert forge.calls("GET", "/api/organization") == []

    def test_known_project_does_not_mutate_config(self, config: Config, forge: FakeForge) -> None:
        """Test that resolving a known project leaves the stored selection alone."""
        self._remember(config)
        make_setup(config, forge).run(LoginRequirement.IGNORE_LOGIN, IGNORE, IGNORE)

        assert config.organization_id == ""
        assert config.project_id == ""
        assert config.path is not None and not config.path.exists()

    def test_known_project_of_other_organization_is_ignored(self, config: Config, forge: FakeForge) -> None:
        """Test that a known project from another organization doesn't apply."""
        self._remember(config, org_id="org-2")
        config.organization_id = "org-1"

        state = make_setup(config, forge).run(LoginRequirement.IGNORE_LOGIN, IGNORE, IGNORE)

        assert state.curr_repo_known is False

    def test_different_path_is_not_known(self, config: Config, forge: FakeForge) -> None:
        """Test that the repo path must match as well as the URL."""
        self._remember(config)
        config.curr_repo_path = "other"

        state = make_setup(config, forge).run(LoginRequirement.IGNORE_LOGIN, IGNORE, IGNORE)

        assert state.curr_repo_known is False


class TestRepoLookup:
    """Tests for asking World Forge which project a repository belongs to."""

    def _in_repo(self, config: Config) -> None:
        config.curr_repo_url = "https://github.com/acme/game"
        config.curr_repo_path = "game"

    def test_found_project_is_used_and_remembered(self, config: Config, forge: FakeForge) -> None:
        """Test that a fresh clone resolves its project without any selection."""
        self._in_repo(config)
        forge.add("GET", "/api/project/", envelope(project_data()))
        forge.add("GET", "/api/organization/org-1", envelope(org_data()))
        forge.add("GET", "/api/organization/org-1/project/proj-1", envelope(project_data()))

        state = make_setup(config, forge).run(LoginRequirement.IGNORE_LOGIN, NEED_ID_ONLY, NEED_ID_ONLY)

        assert state.curr_repo_known is True
        assert state.project is not None
        assert state.project.id == "proj-1"
        lookup = forge.calls("GET", "/api/project/")[0]
        assert lookup.url.params["url"] == "https://github.com/acme/game"
        assert lookup.url.params["path"] == "game"
        known = config.find_known_project("https://github.com/acme/game", "game")
        assert known is not None
        assert (known.organization_id, known.project_id) == ("org-1", "proj-1")
        assert config.project_id == ""
        assert config.path is not None
        assert json.loads(config.path.read_text())["known_projects"][0]["project_id"] == "proj-1"

    @pytest.mark.parametrize("response", [envelope(None), api_error(500, "database unavailable")])
    def test_nothing_found_or_failed(self, config: Config, forge: FakeForge, response: httpx.Response) -> None:
        """Test that an empty or failed lookup leaves the stored selection in charge."""
        self._in_repo(config)
        forge.add("GET", "/api/project/", response)

        state = make_setup(config, forge).run(LoginRequirement.IGNORE_LOGIN, MUST_NOT_EXIST, MUST_NOT_EXIST)

        assert state.curr_repo_known is False
        assert config.known_projects == []
        assert len(forge.requests) == 1

    @pytest.mark.parametrize(
        "organization, project",
        [(IGNORE, NEED_ID_ONLY), (NEED_ID_ONLY, IGNORE)],
    )
    def test_skipped_when_a_gate_is_ignored(
        self,
        config: Config,
        forge: FakeForge,
        organization: StepRequirement,
        project: StepRequirement,
    ) -> None:
        self._in_repo(config)

        with pytest.raises(NotSelectedError):
            make_setup(config, forge).run(LoginRequirement.IGNORE_LOGIN, organization, project)
        assert forge.calls("GET", "/api/project/") == []

    def test_skipped_when_logged_out(self, config: Config, forge: FakeForge) -> None:
        self._in_repo(config)
        config.credential.token_expires_at = NOW - timedelta(seconds=1)

        make_setup(config, forge).run(LoginRequirement.IGNORE_LOGIN, MUST_NOT_EXIST, MUST_NOT_EXIST)

        assert forge.requests == []

    def test_skipped_for_known_repo(self, config: Config, forge: FakeForge) -> None:
        """Test that a repository known under another organization isn't looked up again."""
        self._in_repo(config)
        config.organization_id = "org-1"
        config.add_known_project("proj-1", "My Game", "org-2", "https://github.com/acme/game", "game")
        forge.add("GET", "/api/organization/org-1", envelope(org_data()))

        state = make_setup(config, forge).run(LoginRequirement.IGNORE_LOGIN, NEED_ID_ONLY, MUST_NOT_EXIST)

        assert state.curr_repo_known is False
        assert forge.calls("GET", "/api/project/") == []
        assert len(forge.requests) == 1


class TestCommandState:
    """Tests for the CommandState accessors used by commands."""

    def test_require_missing(self) -> None:
        state = CommandState()

        with pytest.raises(NotSelectedError, match="organization"):
            state.require_organization()
        with pytest.raises(NotSelectedError, match="project"):
            state.require_project()

    def test_require_present(self) -> None:
        state = CommandState(
            organization=Organization.from_api(org_data()),
            project=Project.from_api(project_data()),
        )

        assert state.require_organization().slug == "studio"
        assert state.require_project().slug == "my_game"
