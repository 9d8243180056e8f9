"""Shared fixtures: a fake Forge backend, scripted input and a temp config."""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import httpx
import pytest

from worldcli.client import ForgeClient
from worldcli.config import Config, Credential
from worldcli.init_flow import InitFlow
from worldcli.organizations import OrganizationResolver
from worldcli.projects import ProjectResolver
from worldcli.setup import CommandSetup

BASE_URL = "https://forge.test"
NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

Responder = httpx.Response | Callable[[httpx.Request], httpx.Response]


def envelope(data: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json={"data": data})


def api_error(status_code: int, message: str) -> httpx.Response:
    return httpx.Response(status_code, json={"message": message})


def org_data(org_id: str = "org-1", slug: str = "studio", name: str = "Studio") -> dict[str, Any]:
    return {"id": org_id, "name": name, "slug": slug, "owner_id": "user-1"}


def project_data(
    project_id: str = "proj-1",
    slug: str = "my_game",
    name: str = "My Game",
    org_id: str = "org-1",
) -> dict[str, Any]:
    return {
        "id": project_id,
        "org_id": org_id,
        "name": name,
        "slug": slug,
        "repo_url": "https://github.com/acme/game",
        "repo_path": "",
        "config": {"tick_rate": 1, "region": ["ap-southeast-1"]},
    }


class FakeForge:
    """Routes requests by (method, path) to canned responses and records them.

    A route holding several responses answers with them in order and keeps
    repeating the last one.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[Responder]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, *responses: Responder) -> None:
        self.routes[(method, path)] = list(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responses = self.routes.get((request.method, request.url.path))
        if not responses:
            return api_error(404, f"no route for {request.method} {request.url.path}")
        responder = responses.pop(0) if len(responses) > 1 else responses[0]
        if callable(responder) and not isinstance(responder, httpx.Response):
            return responder(request)
        return responder

    def client(self, token: str = "token") -> ForgeClient:
        return ForgeClient(BASE_URL, token=token, transport=httpx.MockTransport(self.handler))

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def json_body(self, request: httpx.Request) -> Any:
        return json.loads(request.content)


class ScriptedReader:
    """An InputReader answering from a list; an empty answer takes the default."""

    def __init__(self, answers: list[str] | None = None) -> None:
        self.answers = list(answers or [])
        self.prompts: list[str] = []

    def prompt(self, message: str, default: str = "") -> str:
        self.prompts.append(message)
        if not self.answers:
            raise AssertionError(f"Unexpected prompt: {message}")
        answer = self.answers.pop(0)
        return answer or default


@pytest.fixture
def forge() -> FakeForge:
    return FakeForge()


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """A logged-in config stored in a temp directory."""
    cfg = Config(
        credential=Credential(
            token="token",
            token_expires_at=NOW + timedelta(hours=1),
            id="user-1",
            name="Jane",
            email="jane@example.com",
        )
    )
    cfg.path = tmp_path / "forge-config.json"
    return cfg


def make_setup(
    config: Config,
    forge: FakeForge,
    reader: ScriptedReader | None = None,
    cwd: Path | None = None,
) -> CommandSetup:
    client = forge.client(config.credential.token)
    reader = reader or ScriptedReader()
    init_flow = InitFlow(
        OrganizationResolver(config, client, reader),
        ProjectResolver(config, client, reader, cwd=cwd or Path("/nonexistent")),
    )
    return CommandSetup(config, client, init_flow, clock=lambda: NOW)


def make_world_root(path: Path) -> Path:
    (path / "world.toml").write_text('[forge]\nPROJECT_NAME = "Space Race"\n', encoding="utf-8")
    (path / "cardinal").mkdir()
    return path
