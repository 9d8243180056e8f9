"""Configuration management for World Forge CLI."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .errors import ValidationFailedError
from .logging import error_console, get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".worldcli" / "forge-config.json"

ENV_PROD = "PROD"
ENV_DEV = "DEV"
ENV_LOCAL = "LOCAL"

BASE_URLS: dict[str, str] = {
    ENV_PROD: "https://forge.world.dev",
    ENV_DEV: "https://forge.argus.dev",
    ENV_LOCAL: "http://localhost:8001",
}


def get_base_url(env: str | None) -> str:
    """Get the Forge API base URL for an environment.

    Args:
        env: Environment name (PROD, DEV or LOCAL), case-insensitive. None means PROD.

    Returns:
        The base URL without a trailing slash.

    Raises:
        ValidationFailedError: If the environment is unknown.
    """
    name = (env or ENV_PROD).upper()
    if name not in BASE_URLS:
        available = ", ".join(BASE_URLS)
        raise ValidationFailedError(f"Unknown environment '{env}'. Available: {available}")
    return BASE_URLS[name]


def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Credential:
    """The login token and who it belongs to."""

    token: str = ""
    token_expires_at: datetime | None = None
    id: str = ""
    name: str = ""
    email: str = ""

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the token is missing an expiry or the expiry has passed."""
        now = now or datetime.now(timezone.utc)
        return self.token_expires_at is None or self.token_expires_at <= now

    def is_valid(self, now: datetime | None = None) -> bool:
        return bool(self.token) and not self.is_expired(now)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Credential:
        return cls(
            token=data.get("token", ""),
            token_expires_at=_parse_time(data.get("token_expires_at")),
            id=data.get("id", ""),
            name=data.get("name", ""),
            email=data.get("email", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "token": self.token,
            "token_expires_at": self.token_expires_at.isoformat() if self.token_expires_at else None,
            "id": self.id,
            "name": self.name,
            "email": self.email,
        }


@dataclass
class KnownProject:
    """A git repo location that was previously used with a Forge project."""

    repo_url: str
    repo_path: str
    organization_id: str
    project_id: str
    project_name: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> KnownProject:
        return cls(
            repo_url=data.get("repo_url", ""),
            repo_path=data.get("repo_path", ""),
            organization_id=data.get("organization_id", ""),
            project_id=data.get("project_id", ""),
            project_name=data.get("project_name", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "repo_url": self.repo_url,
            "repo_path": self.repo_path,
            "organization_id": self.organization_id,
            "project_id": self.project_id,
            "project_name": self.project_name,
        }


@dataclass
class Config:
    """Main configuration class.

    Only ``organization_id``, ``project_id``, ``credential`` and ``known_projects``
    are persisted. The ``curr_*`` fields describe the current working directory
    and are filled in at startup.
    """

    organization_id: str = ""
    project_id: str = ""
    credential: Credential = field(default_factory=Credential)
    known_projects: list[KnownProject] = field(default_factory=list)
    curr_repo_url: str = ""
    curr_repo_path: str = ""
    curr_project_name: str = ""
    path: Path | None = field(default=None, repr=False, compare=False)

    def find_known_project(
        self,
        repo_url: str,
        repo_path: str,
        organization_id: str | None = None,
    ) -> KnownProject | None:
        """Find the known project for a repo URL and path.

        Args:
            repo_url: The git remote URL (without a trailing .git).
            repo_path: Path of the working directory relative to the repo root.
            organization_id: If given, only entries for this organization match.

        Returns:
            The matching entry, or None.
        """
        if not repo_url:
            return None
        for known in self.known_projects:
            if known.repo_url != repo_url or known.repo_path != repo_path:
                continue
            if organization_id and known.organization_id != organization_id:
                continue
            return known
        return None

    def add_known_project(
        self,
        project_id: str,
        project_name: str,
        organization_id: str,
        repo_url: str,
        repo_path: str,
    ) -> None:
        """Record (or replace) the known project for a repo URL and path."""
        self.known_projects = [
            known
            for known in self.known_projects
            if not (known.repo_url == repo_url and known.repo_path == repo_path)
        ]
        self.known_projects.append(
            KnownProject(
                repo_url=repo_url,
                repo_path=repo_path,
                organization_id=organization_id,
                project_id=project_id,
                project_name=project_name,
            )
        )

    def remove_known_projects(self, project_id: str) -> None:
        self.known_projects = [known for known in self.known_projects if known.project_id != project_id]

    def to_dict(self) -> dict[str, Any]:
        return {
            "organization_id": self.organization_id,
            "project_id": self.project_id,
            "credential": self.credential.to_dict(),
            "known_projects": [known.to_dict() for known in self.known_projects],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        known_data = data.get("known_projects") or []
        if not isinstance(known_data, list):
            raise ValidationFailedError("Invalid config: 'known_projects' must be a list")
        return cls(
            organization_id=data.get("organization_id", "") or "",
            project_id=data.get("project_id", "") or "",
            credential=Credential.from_dict(data.get("credential") or {}),
            known_projects=[KnownProject.from_dict(item) for item in known_data],
        )

    def save(self) -> Path:
        """Save the config back to the file it was loaded from."""
        return save_config(self, self.path)


def get_config_path() -> Path:
    """Get the config file path, honoring WORLD_FORGE_CONFIG."""
    override = os.environ.get("WORLD_FORGE_CONFIG")
    return Path(override) if override else DEFAULT_CONFIG_PATH


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from the JSON config file.

    A missing file is not an error; it yields an empty config that will be
    created on the first save.

    Args:
        config_path: Path to config file, or None for default.

    Returns:
        Parsed configuration.

    Raises:
        ValidationFailedError: If the file exists but is not a valid config.
    """
    path = config_path or get_config_path()

    if not path.exists():
        logger.debug(f"No config file at {path}, starting with an empty config")
        config = Config()
        config.path = path
        return config

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValidationFailedError(
            f"Config file is not valid JSON: {path}",
            hint=f"Fix or delete {path} and run 'world login' again.",
        ) from e

    if not isinstance(data, dict):
        raise ValidationFailedError(f"Invalid config in {path}: expected a JSON object")

    try:
        config = Config.from_dict(data)
    except ValueError as e:
        raise ValidationFailedError(f"Invalid config in {path}: {e}") from e
    config.path = path
    return config


def save_config(config: Config, config_path: Path | None = None) -> Path:
    """Write the config as JSON, readable only by the current user.

    Args:
        config: The configuration to save.
        config_path: Path to config file, or None for default.

    Returns:
        Path to the saved config file.
    """
    path = config_path or config.path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(config.to_dict(), f, indent=2)
    path.chmod(0o600)

    logger.debug(f"Saved config to {path}")
    return path


def save_config_quietly(config: Config) -> bool:
    """Save the config, downgrading failures to a warning.

    Returns:
        True if the config was saved.
    """
    try:
        config.save()
    except OSError as e:
        logger.warning(f"Failed to save config: {e}")
        error_console.print(f"[yellow]Warning: Failed to save config: {e}[/yellow]")
        return False
    return True
