"""Creation wizard shared by organization and project creation.

The wizard is an explicit state machine::

    AWAITING_NAME -> AWAITING_SLUG -> AWAITING_CONFIRMATION -> DONE

Invalid input keeps the current state. A slug rejected by the availability
check or by the server at submit time sends the wizard back to
``AWAITING_SLUG``. Declining the confirmation raises ``CreationCancelledError``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

from rich.markup import escape

from . import errors
from .errors import APIError, CreationCancelledError, ValidationFailedError
from .logging import console, get_logger
from .prompts import InputReader, prompt_choice
from .slug import create_slug_from_name, slug_to_sane_check
from .validate import validate_name

logger = get_logger(__name__)

T = TypeVar("T")


class WizardState(Enum):
    AWAITING_NAME = "awaiting_name"
    AWAITING_SLUG = "awaiting_slug"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    DONE = "done"


@dataclass
class CreationWizard(Generic[T]):
    """Collects a name and slug, confirms, and submits.

    Attributes:
        reader: Where answers come from.
        entity: Human name of what is created, e.g. "organization".
        slug_min: Minimum slug length.
        slug_max: Maximum slug length.
        submit: Creates the entity from (name, slug). May raise an APIError
            whose ``is_slug_taken`` is set.
        check_slug: Optional availability check run on every slug before
            confirmation. Any APIError other than a connection failure or
            timeout asks for another slug.
        describe: Optional extra summary lines shown before confirmation.
        default_name: Pre-filled name, e.g. the current value on update.
        default_slug: Pre-filled slug, kept even if the name changes; derived
            from the name when empty.
        action: Verb used in the confirmation question.
    """

    reader: InputReader
    entity: str
    slug_min: int
    slug_max: int
    submit: Callable[[str, str], T]
    check_slug: Callable[[str], None] | None = None
    describe: Callable[[], list[str]] | None = None
    default_name: str = ""
    default_slug: str = ""
    action: str = "Create"
    state: WizardState = WizardState.AWAITING_NAME
    name: str = ""
    slug: str = ""
    result: T | None = field(default=None, repr=False)

    def run(self) -> T:
        """Drive the wizard until the entity is created.

        Raises:
            CreationCancelledError: If the user declines the confirmation.
            APIError: If ``submit`` fails for a reason other than the slug.
        """
        while self.state is not WizardState.DONE:
            self.step()
        if self.result is None:
            raise APIError(f"World Forge returned no {self.entity}")
        return self.result

    def step(self) -> None:
        """Handle exactly one prompt and move to the next state."""
        if self.state is WizardState.AWAITING_NAME:
            self._ask_name()
        elif self.state is WizardState.AWAITING_SLUG:
            self._ask_slug()
        elif self.state is WizardState.AWAITING_CONFIRMATION:
            self._confirm()

    def _ask_name(self) -> None:
        answer = self.reader.prompt(f"Enter {self.entity} name", self.name or self.default_name)
        try:
            self.name = validate_name(answer)
        except ValidationFailedError as e:
            console.print(f"[red]{e.message}[/red]")
            return
        self.state = WizardState.AWAITING_SLUG

    def _suggested_slug(self) -> str:
        if self.slug:
            return self.slug
        if self.default_slug:
            return self.default_slug
        return create_slug_from_name(self.name, self.slug_min, self.slug_max)

    def _ask_slug(self) -> None:
        answer = self.reader.prompt(f"Enter {self.entity} slug", self._suggested_slug())
        try:
            slug = slug_to_sane_check(answer, self.slug_min, self.slug_max)
        except ValidationFailedError as e:
            console.print(f"[red]{e.message}[/red]")
            return

        if self.check_slug is not None:
            try:
                self.check_slug(slug)
            except (errors.ConnectionError, errors.TimeoutError):
                raise
            except APIError as e:
                logger.debug(f"Slug check for {slug!r} failed: {e.message}")
                if e.is_slug_taken:
                    console.print(f"[red]Slug '{slug}' is already taken, please choose another one.[/red]")
                else:
                    console.print(f"[red]Could not use slug '{slug}': {escape(e.message)}[/red]")
                return

        self.slug = slug
        self.state = WizardState.AWAITING_CONFIRMATION

    def _confirm(self) -> None:
        console.print(f"\n[bold]{self.entity.capitalize()} details[/bold]")
        console.print(f"  Name: {self.name}")
        console.print(f"  Slug: {self.slug}")
        if self.describe is not None:
            for line in self.describe():
                console.print(f"  {line}")

        answer = prompt_choice(
            self.reader,
            f"{self.action} {self.entity} {self.name} ({self.slug})?",
            ["Y", "y", "n", "N"],
            "Y",
        )
        if answer in ("n", "N"):
            raise CreationCancelledError(f"{self.entity.capitalize()} {self.action.lower()} cancelled")

        try:
            self.result = self.submit(self.name, self.slug)
        except APIError as e:
            if not e.is_slug_taken:
                raise
            logger.debug(f"Server rejected slug {self.slug!r}: {e.message}")
            console.print(f"[red]{e.message}. Please choose another slug.[/red]")
            self.slug = ""
            self.state = WizardState.AWAITING_SLUG
            return

        self.state = WizardState.DONE
