"""Browser login.

The CLI asks Forge for a login link tied to a random key, opens it in the
browser and polls the callback URL until the user finishes signing in. The
returned JWT becomes the stored credential.
"""

from __future__ import annotations

import base64
import json
import time
import uuid
import webbrowser
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from .client import ForgeClient
from .config import Config, Credential, save_config_quietly
from .errors import APIError, LoginTimeoutError, ValidationFailedError
from .logging import console, get_logger

logger = get_logger(__name__)

POLL_INTERVAL = 3.0
# 11 minutes at one attempt every 3 seconds
MAX_LOGIN_ATTEMPTS = 220
# The stored expiry is this much earlier than the token's real expiry
TOKEN_LEEWAY = timedelta(seconds=60)

STATUS_PENDING = "pending"
STATUS_SUCCESS = "success"


class AuthLauncher(Protocol):
    """Shows the login page to the user."""

    def open(self, url: str) -> None: ...


class BrowserLauncher:
    """Opens the login page in the default browser, printing the URL as a fallback."""

    def open(self, url: str) -> None:
        console.print("Opening your browser to log in. If it doesn't open, visit:")
        console.print(url, markup=False)
        try:
            opened = webbrowser.open(url)
        except webbrowser.Error as e:
            logger.debug(f"Failed to open browser: {e}")
            opened = False
        if not opened:
            console.print("[yellow]Could not open a browser, please open the URL above manually.[/yellow]")


def generate_login_key() -> str:
    return str(uuid.uuid4())


def _decode_segment(segment: str) -> dict[str, Any]:
    padded = segment + "=" * (-len(segment) % 4)
    payload = base64.urlsafe_b64decode(padded.encode("ascii"))
    claims = json.loads(payload)
    if not isinstance(claims, dict):
        raise ValueError("claims are not an object")
    return claims


def parse_jwt_token(token: str) -> Credential:
    """Build a credential from a JWT without verifying its signature.

    The expiry is the ``exp`` claim minus a 60 second leeway; the user id is
    the ``sub`` claim.

    Raises:
        ValidationFailedError: If the token is malformed.
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise ValidationFailedError("Invalid token format")
    try:
        claims = _decode_segment(parts[1])
    except (ValueError, UnicodeEncodeError) as e:
        raise ValidationFailedError(f"Failed to parse token claims: {e}") from e

    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        raise ValidationFailedError("Token has no expiry")

    return Credential(
        token=token,
        token_expires_at=datetime.fromtimestamp(exp, tz=timezone.utc) - TOKEN_LEEWAY,
        id=str(claims.get("sub", "")),
        name=str(claims.get("name", "")),
        email=str(claims.get("email", "")),
    )


@dataclass
class LoginFlow:
    """Runs the browser login and stores the resulting credential.

    Attributes:
        config: Config the credential is saved to.
        client: Forge API client; receives the new token.
        launcher: Shows the login page.
        key_generator: Produces the login session key.
        sleep: Waits between polls.
        poll_interval: Seconds between polls.
        max_attempts: Polls before giving up.
    """

    config: Config
    client: ForgeClient
    launcher: AuthLauncher = field(default_factory=BrowserLauncher)
    key_generator: Callable[[], str] = field(default=generate_login_key)
    sleep: Callable[[float], None] = field(default=time.sleep)
    poll_interval: float = POLL_INTERVAL
    max_attempts: int = MAX_LOGIN_ATTEMPTS

    def run(self) -> Credential:
        """Log in and save the credential.

        Raises:
            LoginTimeoutError: If the user doesn't finish logging in in time.
            APIError: If Forge reports a failed login.
        """
        key = self.key_generator()
        link = self.client.get_login_link(key)
        self.launcher.open(link.client_url)

        with console.status("Waiting for login to complete..."):
            jwt = self.poll(link.callback_url)

        credential = parse_jwt_token(jwt)
        self.config.credential = credential
        self.client.set_token(credential.token)
        save_config_quietly(self.config)

        user = self.client.get_user()
        if user.id and user.id != credential.id:
            logger.debug(f"Token subject {credential.id} differs from user id {user.id}")
            credential.id = user.id
        credential.name = user.name or credential.name
        credential.email = user.email or credential.email
        save_config_quietly(self.config)
        return credential

    def poll(self, callback_url: str) -> str:
        """Poll the callback until it reports success and return the JWT.

        A failed request counts as an attempt and polling goes on. Only an
        explicit status other than pending or success stops it early.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                token = self.client.get_login_token(callback_url)
            except APIError as e:
                logger.debug(f"Login token request failed (attempt {attempt}/{self.max_attempts}): {e.message}")
                self.sleep(self.poll_interval)
                continue
            if token.status == STATUS_SUCCESS:
                if not token.jwt:
                    raise APIError("Login succeeded but no token was returned")
                return token.jwt
            if token.status != STATUS_PENDING:
                raise APIError(f"Login failed with status: {token.status}")
            logger.debug(f"Login pending (attempt {attempt}/{self.max_attempts})")
            self.sleep(self.poll_interval)

        raise LoginTimeoutError(
            "Timed out waiting for login",
            hint="Run 'world login' again and complete the login in your browser.",
        )
