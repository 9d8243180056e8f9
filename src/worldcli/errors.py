"""Exception hierarchy and error hints for World Forge CLI."""

from __future__ import annotations

from typing import Any

# Messages the Forge backend returns verbatim; must always match the server.
ORGANIZATION_SLUG_EXISTS = "organization slug already exists"
PROJECT_SLUG_EXISTS = "project slug already exists"

# Mapping of HTTP status codes to helpful hint messages
STATUS_HINTS: dict[int, str] = {
    401: "Your session is no longer valid. Run 'world login' to sign in again.",
    403: "You don't have permission for this action in the selected organization.",
    404: "The requested resource was not found. It may have been deleted.",
    409: "Another operation of the same type is already in progress.",
    429: "Too many requests. Wait a moment and try again.",
    500: "World Forge hit a server error. Try again later.",
    502: "World Forge is temporarily unavailable. Try again later.",
    503: "World Forge is currently experiencing issues, please try again later.",
    504: "World Forge did not respond in time. Try again later.",
}


class ForgeError(Exception):
    """Base exception for World Forge CLI errors.

    Attributes:
        message: Human-readable error description.
        hint: Optional suggestion shown to the user below the error.
    """

    def __init__(self, message: str, hint: str | None = None) -> None:
        self.message = message
        self.hint = hint
        super().__init__(message)


class NotLoggedInError(ForgeError):
    """No credential is stored."""

    def __init__(self, message: str = "Not logged in") -> None:
        super().__init__(message, hint="Login required, please run 'world login'.")


class TokenExpiredError(ForgeError):
    """The stored credential has expired."""

    def __init__(self, message: str = "Login token has expired") -> None:
        super().__init__(message, hint="Please run 'world login' to refresh your session.")


class NotFoundError(ForgeError):
    """An organization, project or other entity does not exist."""


class ValidationFailedError(ForgeError):
    """User or config input failed validation (slug, URL, email, name)."""


class SelectionCancelledError(ForgeError):
    """The user declined or aborted a selection prompt."""


class CreationCancelledError(ForgeError):
    """The user declined or aborted a creation flow."""


class PreconditionViolatedError(ForgeError):
    """The local selection state does not allow the command to run."""


class NotSelectedError(PreconditionViolatedError):
    """A command needs an organization or project, but none is selected."""


class LoginTimeoutError(ForgeError):
    """Browser login did not complete within the allowed attempts."""


class BuildError(ForgeError):
    """Building or exporting the game image failed."""


class APIError(ForgeError):
    """API request failed or returned an unusable response.

    Attributes:
        status_code: HTTP status code if applicable, None otherwise.
        details: Additional error context as a dictionary.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        self.details = details or {}
        hint = STATUS_HINTS.get(status_code) if status_code is not None else None
        super().__init__(message, hint=hint)

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_slug_taken(self) -> bool:
        # Slug conflicts are the only 409 the create and check endpoints return
        if self.status_code == 409:
            return True
        lowered = self.message.lower()
        return ORGANIZATION_SLUG_EXISTS in lowered or PROJECT_SLUG_EXISTS in lowered


class ConnectionError(APIError):  # noqa: A001
    """Failed to connect to the Forge API."""


class TimeoutError(APIError):  # noqa: A001
    """Request to the Forge API timed out."""


def format_error_with_hint(error: Exception) -> tuple[str, str | None]:
    """Format an exception for display with an optional hint.

    Args:
        error: The exception raised by a command.

    Returns:
        A tuple of (error_message, hint_message or None).
    """
    if isinstance(error, ForgeError):
        return error.message, error.hint
    return str(error), None
