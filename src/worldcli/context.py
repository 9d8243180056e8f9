"""CLI context management for World Forge CLI."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from .prompts import ConsoleInputReader, InputReader

if TYPE_CHECKING:
    from .client import ForgeClient
    from .config import Config
    from .deployment import Deployer
    from .login import AuthLauncher, LoginFlow
    from .organizations import OrganizationResolver
    from .projects import ProjectResolver
    from .setup import CommandState, LoginRequirement, StepRequirement


@dataclass
class Context:
    """CLI context passed to all commands.

    The config and client are created on first use. Tests replace the
    strategies (reader, launcher, sleep, transport) before invoking commands.
    """

    config_path: Path | None = None
    env: str | None = None
    verbose: bool = False
    cwd: Path | None = None
    config: Config | None = None
    client: ForgeClient | None = None
    reader: InputReader = field(default_factory=ConsoleInputReader)
    launcher: AuthLauncher | None = None
    sleep: Callable[[float], None] = field(default=time.sleep)

    @property
    def working_dir(self) -> Path:
        return self.cwd or Path.cwd()

    def get_config(self) -> Config:
        """Load the config and describe the working directory's repo."""
        from .config import load_config
        from .repo import find_git_path_and_url

        if self.config is None:
            config = load_config(self.config_path)
            location = find_git_path_and_url(self.working_dir)
            if location is not None:
                config.curr_repo_url = location.url
                config.curr_repo_path = location.path
            self.config = config
        return self.config

    def get_client(self) -> ForgeClient:
        """Get a Forge client for the selected environment, authenticated if logged in."""
        from .client import ForgeClient
        from .config import get_base_url

        if self.client is None:
            self.client = ForgeClient(get_base_url(self.env), token=self.get_config().credential.token)
        return self.client

    def organizations(self) -> OrganizationResolver:
        from .organizations import OrganizationResolver

        return OrganizationResolver(self.get_config(), self.get_client(), self.reader)

    def projects(self) -> ProjectResolver:
        from .projects import ProjectResolver

        return ProjectResolver(self.get_config(), self.get_client(), self.reader, cwd=self.working_dir)

    def setup(
        self,
        login: LoginRequirement,
        organization: StepRequirement,
        project: StepRequirement,
    ) -> CommandState:
        """Run the setup gates for a command."""
        from .init_flow import InitFlow
        from .setup import CommandSetup

        init_flow = InitFlow(self.organizations(), self.projects())
        return CommandSetup(self.get_config(), self.get_client(), init_flow).run(login, organization, project)

    def login_flow(self) -> LoginFlow:
        from .login import BrowserLauncher, LoginFlow

        return LoginFlow(
            self.get_config(),
            self.get_client(),
            launcher=self.launcher or BrowserLauncher(),
            sleep=self.sleep,
        )

    def deployer(self) -> Deployer:
        from .deployment import Deployer

        return Deployer(self.get_client(), self.reader, project_root=self.working_dir, sleep=self.sleep)


# Global context instance
_ctx = Context()


def get_context() -> Context:
    """Get the current CLI context."""
    return _ctx


def reset_context() -> Context:
    """Replace the global context with a fresh one."""
    global _ctx
    _ctx = Context()
    return _ctx
