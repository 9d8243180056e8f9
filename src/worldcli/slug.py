"""Slug generation and validation for organizations and projects."""

from __future__ import annotations

import re
import uuid

from .errors import ValidationFailedError

ORGANIZATION_SLUG_MIN = 3
ORGANIZATION_SLUG_MAX = 15
PROJECT_SLUG_MIN = 3
PROJECT_SLUG_MAX = 25

_SLUG_CHARS = re.compile(r"^[a-z0-9_]+$")
_REPEATED_UNDERSCORES = re.compile(r"_+")


def create_slug_from_name(name: str, min_length: int, max_length: int) -> str:
    """Derive a slug from a display name.

    Lower-cases the name and turns camelCase into snake_case. Digits count as
    capitals, so ``Web3Game`` becomes ``web3_game``. Runs of other characters
    collapse into a single underscore. When the name is longer than
    ``max_length`` separators are dropped instead, to keep more of the name.

    A result shorter than ``min_length`` gets a random 8 character hex suffix;
    a longer one is truncated to ``max_length``.

    Args:
        name: The display name.
        min_length: Minimum slug length.
        max_length: Maximum slug length.

    Returns:
        A slug matching ``[a-z0-9_]+`` without leading or trailing underscores.
    """
    shorten = len(name) > max_length
    chars: list[str] = []
    had_capital = False
    wrote_underscore = False

    for i, char in enumerate(name):
        if char.isascii() and (char.islower() or char.isdigit()):
            chars.append(char)
            had_capital = char.isdigit()
            wrote_underscore = False
        elif char.isascii() and char.isupper():
            if not shorten and i != 0 and not wrote_underscore and not had_capital:
                chars.append("_")
            chars.append(char.lower())
            had_capital = True
            wrote_underscore = False
        elif (char == "_" or not shorten) and not wrote_underscore:
            chars.append("_")
            wrote_underscore = True

    slug = "".join(chars).strip("_")

    if len(slug) < min_length:
        slug = f"{slug}_{uuid.uuid4().hex[:8]}".lstrip("_")

    if len(slug) > max_length:
        slug = slug[:max_length].rstrip("_")

    return slug


def slug_to_sane_check(slug: str, min_length: int, max_length: int) -> str:
    """Validate a user-entered slug and normalize it.

    Repeated underscores collapse into one, leading and trailing underscores
    are trimmed, and the result is truncated to ``max_length``.

    Raises:
        ValidationFailedError: If the slug is too short or has invalid characters.
    """
    if len(slug) < min_length:
        raise ValidationFailedError(f"Slug must be at least {min_length} characters")

    if not _SLUG_CHARS.match(slug):
        raise ValidationFailedError(
            "Slug can only contain lowercase letters, numbers, and underscores",
        )

    slug = _REPEATED_UNDERSCORES.sub("_", slug).strip("_")
    slug = slug[:max_length].rstrip("_")

    if len(slug) < min_length:
        raise ValidationFailedError(f"Slug must be at least {min_length} characters")
    return slug
