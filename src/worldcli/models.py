"""Data models for World Forge CLI.

This module contains dataclasses that represent Forge entities as returned by
the API. Each model is built with ``from_api`` and serialized with ``to_dict``
so the same object can back both JSON and human-readable output.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

# Used when asking the API about a project that doesn't exist yet
NIL_UUID = "00000000-0000-0000-0000-000000000000"


@dataclass
class User:
    """The user behind the current credential."""

    id: str
    name: str = ""
    email: str = ""
    avatar_url: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> User:
        return cls(
            id=data.get("id") or "",
            name=data.get("name") or "",
            email=data.get("email") or "",
            avatar_url=data.get("avatar_url") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "avatar_url": self.avatar_url,
        }


@dataclass
class Organization:
    """A tenant grouping projects and users."""

    id: str
    name: str = ""
    slug: str = ""
    owner_id: str = ""
    created_time: str = ""
    updated_time: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Organization:
        """Create an Organization from Forge API response data.

        Args:
            data: The organization data from the API.

        Returns:
            An Organization instance.
        """
        return cls(
            id=data.get("id") or "",
            name=data.get("name") or "",
            slug=data.get("slug") or "",
            owner_id=data.get("owner_id") or "",
            created_time=data.get("created_time") or "",
            updated_time=data.get("updated_time") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "owner_id": self.owner_id,
            "created_time": self.created_time,
            "updated_time": self.updated_time,
        }


@dataclass
class ProjectConfig:
    """Deployment settings attached to a project."""

    tick_rate: int = 0
    regions: list[str] = field(default_factory=list)
    discord: dict[str, Any] = field(default_factory=dict)
    slack: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: dict[str, Any] | None) -> ProjectConfig:
        data = data or {}
        return cls(
            tick_rate=data.get("tick_rate", 0) or 0,
            regions=list(data.get("region") or []),
            discord=dict(data.get("discord") or {}),
            slack=dict(data.get("slack") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "tick_rate": self.tick_rate,
            "region": list(self.regions),
            "discord": dict(self.discord),
            "slack": dict(self.slack),
        }


@dataclass
class Project:
    """A deployable game service tied to one repository and one organization."""

    id: str
    org_id: str = ""
    name: str = ""
    slug: str = ""
    repo_url: str = ""
    repo_path: str = ""
    repo_token: str = ""
    avatar_url: str = ""
    owner_id: str = ""
    deploy_secret: str = ""
    config: ProjectConfig = field(default_factory=ProjectConfig)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Project:
        """Create a Project from Forge API response data.

        Args:
            data: The project data from the API.

        Returns:
            A Project instance.
        """
        return cls(
            id=data.get("id") or "",
            org_id=data.get("org_id") or "",
            name=data.get("name") or "",
            slug=data.get("slug") or "",
            repo_url=data.get("repo_url") or "",
            repo_path=data.get("repo_path") or "",
            repo_token=data.get("repo_token") or "",
            avatar_url=data.get("avatar_url") or "",
            owner_id=data.get("owner_id") or "",
            deploy_secret=data.get("deploy_secret") or "",
            config=ProjectConfig.from_api(data.get("config")),
        )

    def to_payload(self) -> dict[str, Any]:
        """Build the request body used to create or update the project."""
        return {
            "name": self.name,
            "slug": self.slug,
            "repo_url": self.repo_url,
            "repo_token": self.repo_token,
            "repo_path": self.repo_path,
            "org_id": self.org_id,
            "config": self.config.to_dict(),
            "avatar_url": self.avatar_url,
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output. The repo token is never included."""
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "slug": self.slug,
            "repo_url": self.repo_url,
            "repo_path": self.repo_path,
            "avatar_url": self.avatar_url,
            "config": self.config.to_dict(),
        }


@dataclass
class LoginLink:
    """Where to send the user and where to poll for their token."""

    callback_url: str
    client_url: str

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> LoginLink:
        return cls(
            callback_url=data.get("callbackUrl") or "",
            client_url=data.get("clientUrl") or "",
        )


@dataclass
class LoginToken:
    """One poll result from the login callback."""

    status: str
    jwt: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> LoginToken:
        return cls(status=data.get("status") or "", jwt=data.get("jwt") or "")


@dataclass
class DeploymentPreview:
    """What a deploy/destroy/reset/promote would do, without doing it."""

    org_name: str = ""
    org_slug: str = ""
    project_name: str = ""
    project_slug: str = ""
    executor_name: str = ""
    deployment_type: str = ""
    tick_rate: int = 0
    regions: list[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> DeploymentPreview:
        return cls(
            org_name=data.get("org_name") or "",
            org_slug=data.get("org_slug") or "",
            project_name=data.get("project_name") or "",
            project_slug=data.get("project_slug") or "",
            executor_name=data.get("executor_name") or "",
            deployment_type=data.get("deployment_type") or "",
            tick_rate=data.get("tick_rate", 0) or 0,
            regions=list(data.get("regions") or []),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "org_name": self.org_name,
            "org_slug": self.org_slug,
            "project_name": self.project_name,
            "project_slug": self.project_slug,
            "executor_name": self.executor_name,
            "deployment_type": self.deployment_type,
            "tick_rate": self.tick_rate,
            "regions": list(self.regions),
        }


class DeployStatus(str, Enum):
    """Deployment states reported by the backend that the CLI reacts to."""

    CREATED = "created"
    REMOVED = "removed"
    FAILED = "failed"


@dataclass
class DeploymentInfo:
    """The latest deployment of a project in one environment."""

    env: str
    project_id: str
    status: str
    executor: str
    created_at: datetime | None = None
    deployment_type: str = ""

    @classmethod
    def from_api(cls, env: str, data: dict[str, Any]) -> DeploymentInfo:
        """Create a DeploymentInfo from one environment entry of /deployment.

        Args:
            env: The environment key (``dev`` or ``prod``).
            data: The environment payload.

        Returns:
            A DeploymentInfo instance.
        """
        created_at = None
        created_at_str = data.get("created_at")
        if created_at_str:
            # Python < 3.11 doesn't parse a trailing Z
            created_at = datetime.fromisoformat(created_at_str.replace("Z", "+00:00"))
        return cls(
            env=env,
            project_id=data.get("project_id") or "",
            status=data.get("deployment_status") or "",
            executor=data.get("executor_name") or data.get("created_by") or "",
            created_at=created_at,
            deployment_type=data.get("deployment_type") or "",
        )

    @property
    def is_finished(self) -> bool:
        return self.status in (DeployStatus.CREATED.value, DeployStatus.REMOVED.value, DeployStatus.FAILED.value)

    def format_line(self) -> str:
        when = self.created_at.strftime("%Y-%m-%d %H:%M %Z").strip() if self.created_at else "(unknown time)"
        return f"Pod '{self.env}' {self.status} at {when} by '{self.executor}'"

    def to_dict(self) -> dict[str, Any]:
        return {
            "env": self.env,
            "project_id": self.project_id,
            "status": self.status,
            "executor": self.executor,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "deployment_type": self.deployment_type,
        }


# Characters stripped from backend health result strings before display
_RESULT_STR_STRIP = re.compile(r"[^a-zA-Z0-9. ]+")


@dataclass
class ServiceHealth:
    """Health of one service (cardinal or nakama) of a deployed instance."""

    url: str
    ok: bool
    result_code: int = 0
    result_str: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ServiceHealth:
        return cls(
            url=data.get("url") or "",
            ok=bool(data.get("ok", False)),
            result_code=int(data.get("result_code", 0) or 0),
            result_str=data.get("result_str") or "",
        )

    @property
    def host(self) -> str:
        parts = self.url.split("/")
        return parts[2] if len(parts) > 2 else self.url

    def describe(self) -> str:
        if self.ok:
            return f"{self.host} - OK"
        reason = _RESULT_STR_STRIP.sub("", self.result_str)
        if self.result_code == 0:
            return f"{self.host} - FAIL {reason}".rstrip()
        return f"{self.host} - FAIL {self.result_code} {reason}".rstrip()


@dataclass
class InstanceHealth:
    """One deployed instance in a region."""

    region: str
    instance: int
    cardinal: ServiceHealth
    nakama: ServiceHealth

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> InstanceHealth:
        return cls(
            region=data.get("region") or "",
            instance=int(data.get("instance", 0) or 0),
            cardinal=ServiceHealth.from_api(data.get("cardinal") or {}),
            nakama=ServiceHealth.from_api(data.get("nakama") or {}),
        )


@dataclass
class EnvironmentHealth:
    """Health snapshot of one environment across regions."""

    env: str
    ok: bool
    offline: bool
    instances: list[InstanceHealth] = field(default_factory=list)

    @classmethod
    def from_api(cls, env: str, data: dict[str, Any]) -> EnvironmentHealth:
        return cls(
            env=env,
            ok=data.get("ok") is True,
            offline=data.get("offline") is True,
            instances=[InstanceHealth.from_api(item) for item in data.get("deployed_instances") or []],
        )


def env_display_name(env: str) -> str:
    """Map backend environment keys to the names users see."""
    return {"dev": "PREVIEW", "prod": "LIVE"}.get(env, env)
