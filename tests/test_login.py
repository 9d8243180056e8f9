"""Tests for token parsing and the browser login flow."""

from __future__ import annotations

import base64
import json
from datetime import datetime, timezone
from typing import Any

import httpx
import pytest
from conftest import FakeForge, envelope

from worldcli.config import Config
from worldcli.errors import APIError, LoginTimeoutError, ValidationFailedError
from worldcli.login import LoginFlow, parse_jwt_token

EXP = int(datetime(2030, 1, 1, tzinfo=timezone.utc).timestamp())
CALLBACK = "https://forge.test/api/user/login/get-token?key=key-1"


def make_jwt(claims: dict[str, Any]) -> str:
    def encode(obj: dict[str, Any]) -> str:
        return base64.urlsafe_b64encode(json.dumps(obj).encode()).decode().rstrip("=")

    return f"{encode({'alg': 'HS256'})}.{encode(claims)}.signature"


class FakeLauncher:
    def __init__(self) -> None:
        self.opened: list[str] = []

    def open(self, url: str) -> None:
        self.opened.append(url)


def token_response(status: str, jwt: str = "") -> httpx.Response:
    return httpx.Response(200, json={"status": status, "jwt": jwt})


class TestParseJwtToken:
    """Tests for parse_jwt_token()."""

    def test_claims(self) -> None:
        """Test that the expiry has a 60 second leeway and the id is the subject."""
        token = make_jwt({"sub": "user-1", "exp": EXP, "name": "Jane", "email": "jane@example.com"})

        credential = parse_jwt_token(token)

        assert credential.token == token
        assert credential.id == "user-1"
        assert credential.name == "Jane"
        assert credential.token_expires_at == datetime(2029, 12, 31, 23, 59, tzinfo=timezone.utc)

    @pytest.mark.parametrize("token", ["", "abc", "a.b", "a.!!!.c", "a.b.c.d"])
    def test_malformed(self, token: str) -> None:
        with pytest.raises(ValidationFailedError):
            parse_jwt_token(token)

    def test_missing_expiry(self) -> None:
        with pytest.raises(ValidationFailedError):
            parse_jwt_token(make_jwt({"sub": "user-1"}))


class TestLoginFlow:
    """Tests for LoginFlow polling and credential storage."""

    def _flow(self, config: Config, forge: FakeForge, max_attempts: int = 5) -> tuple[LoginFlow, list[float]]:
        slept: list[float] = []
        flow = LoginFlow(
            config,
            forge.client(token=""),
            launcher=FakeLauncher(),
            key_generator=lambda: "key-1",
            sleep=slept.append,
            max_attempts=max_attempts,
        )
        return flow, slept

    def test_poll_pending_then_success(self, config: Config, forge: FakeForge) -> None:
        forge.add(
            "GET",
            "/api/user/login/get-token",
            token_response("pending"),
            token_response("pending"),
            token_response("success", "jwt-value"),
        )
        flow, slept = self._flow(config, forge)

        assert flow.poll(CALLBACK) == "jwt-value"
        assert slept == [3.0, 3.0]

    def test_poll_survives_failed_requests(self, config: Config, forge: FakeForge) -> None:
        """Test that an error response or a dropped connection counts as an attempt and polling goes on."""

        def dropped(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection reset", request=request)

        forge.add(
            "GET",
            "/api/user/login/get-token",
            token_response("pending"),
            httpx.Response(503, text="Service Unavailable"),
            dropped,
            token_response("success", "jwt-value"),
        )
        flow, slept = self._flow(config, forge)

        assert flow.poll(CALLBACK) == "jwt-value"
        assert slept == [3.0, 3.0, 3.0]

    def test_poll_failed_requests_use_up_attempts(self, config: Config, forge: FakeForge) -> None:
        forge.add("GET", "/api/user/login/get-token", httpx.Response(502, text="Bad Gateway"))
        flow, _ = self._flow(config, forge, max_attempts=3)

        with pytest.raises(LoginTimeoutError):
            flow.poll(CALLBACK)
        assert len(forge.requests) == 3

    def test_poll_failure_status(self, config: Config, forge: FakeForge) -> None:
        forge.add("GET", "/api/user/login/get-token", token_response("expired"))
        flow, _ = self._flow(config, forge)

        with pytest.raises(APIError, match="expired"):
            flow.poll(CALLBACK)

    def test_poll_success_without_token(self, config: Config, forge: FakeForge) -> None:
        forge.add("GET", "/api/user/login/get-token", token_response("success"))
        flow, _ = self._flow(config, forge)

        with pytest.raises(APIError):
            flow.poll(CALLBACK)

    def test_poll_gives_up(self, config: Config, forge: FakeForge) -> None:
        """Test that polling stops after max_attempts."""
        forge.add("GET", "/api/user/login/get-token", token_response("pending"))
        flow, slept = self._flow(config, forge, max_attempts=4)

        with pytest.raises(LoginTimeoutError):
            flow.poll(CALLBACK)
        assert len(forge.requests) == 4
        assert len(slept) == 4

    def test_run_saves_credential(self, config: Config, forge: FakeForge) -> None:
        """Test the whole login: link, browser, poll, token, user lookup."""
        jwt = make_jwt({"sub": "user-1", "exp": EXP})
        forge.add("GET", "/api/user/login", envelope({"callbackUrl": CALLBACK, "clientUrl": "https://ui/login"}))
        forge.add("GET", "/api/user/login/get-token", token_response("success", jwt))
        forge.add("GET", "/api/user", envelope({"id": "user-1", "name": "Jane Doe", "email": "jane@doe.dev"}))
        flow, _ = self._flow(config, forge)

        credential = flow.run()

        assert flow.launcher.opened == ["https://ui/login"]  # type: ignore[attr-defined]
        assert credential.token == jwt
        assert credential.name == "Jane Doe"
        assert forge.calls("GET", "/api/user")[0].headers["Authorization"] == f"ArgusID {jwt}"
        saved = json.loads(config.path.read_text())
        assert saved["credential"]["token"] == jwt
