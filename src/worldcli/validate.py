"""Input validation for names, emails and URLs."""

from __future__ import annotations

import re
from urllib.parse import urlparse

from .errors import ValidationFailedError

MAX_NAME_LENGTH = 50

_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_name(name: str, max_length: int = MAX_NAME_LENGTH) -> str:
    """Validate a display name and return it stripped.

    Raises:
        ValidationFailedError: If the name is empty or too long.
    """
    name = name.strip()
    if not name:
        raise ValidationFailedError("Name cannot be empty")
    if len(name) > max_length:
        raise ValidationFailedError(f"Name cannot be longer than {max_length} characters")
    return name


def validate_email(email: str) -> str:
    email = email.strip()
    if not _EMAIL.match(email):
        raise ValidationFailedError(f"Invalid email address: {email!r}")
    return email


def validate_url(url: str) -> str:
    """Check that a URL has an http(s) scheme and a host.

    Raises:
        ValidationFailedError: If the URL is malformed.
    """
    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationFailedError(f"Invalid URL: {url!r}")
    return url


def ensure_https(url: str) -> str:
    """Prefix a bare host/path with https://."""
    url = url.strip()
    if url and not url.startswith(("http://", "https://")):
        return "https://" + url
    return url
