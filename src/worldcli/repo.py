"""Git working-directory detection and world project root checks."""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import tomli

from .errors import ValidationFailedError
from .logging import get_logger

logger = get_logger(__name__)

WORLD_TOML = "world.toml"
CARDINAL_DIR = "cardinal"


class GitError(Exception):
    """A git command failed or git is not installed."""


@dataclass(frozen=True)
class RepoLocation:
    """Where the working directory sits inside its git repository."""

    url: str
    path: str
    root: Path


def run_git(cwd: Path, args: list[str]) -> str:
    """Run a git command and return its stripped stdout.

    Raises:
        GitError: If git is missing or exits non-zero.
    """
    git_path = shutil.which("git")
    if git_path is None:
        raise GitError("git executable not found on PATH")
    completed = subprocess.run(
        [git_path, *args],
        cwd=str(cwd),
        check=False,
        text=True,
        capture_output=True,
    )
    if completed.returncode != 0:
        raise GitError(f"git {' '.join(args)} failed: {completed.stderr.strip()}")
    return completed.stdout.strip()


def normalize_repo_url(url: str) -> str:
    url = url.strip()
    if url.endswith(".git"):
        url = url[: -len(".git")]
    return url


def find_git_path_and_url(cwd: Path | None = None) -> RepoLocation | None:
    """Find the origin URL of the current repo and the directory's path in it.

    Args:
        cwd: Directory to inspect, defaults to the process working directory.

    Returns:
        The repo location, or None when the directory isn't in a git repo
        with an ``origin`` remote.
    """
    cwd = (cwd or Path.cwd()).resolve()
    try:
        url = normalize_repo_url(run_git(cwd, ["config", "--get", "remote.origin.url"]))
        root = Path(run_git(cwd, ["rev-parse", "--show-toplevel"])).resolve()
    except GitError as e:
        logger.debug(f"Not a git repository with an origin remote: {e}")
        return None

    try:
        relative = cwd.relative_to(root).as_posix()
    except ValueError:
        relative = ""
    return RepoLocation(url=url, path="" if relative == "." else relative, root=root)


def get_commit_hash(cwd: Path) -> str:
    """Return the HEAD commit of the repository at ``cwd``."""
    return run_git(cwd, ["rev-parse", "HEAD"])


def is_world_project_root(directory: Path | None = None) -> bool:
    """Check for a ``world.toml`` file next to a ``cardinal/`` directory."""
    directory = directory or Path.cwd()
    return (directory / WORLD_TOML).is_file() and (directory / CARDINAL_DIR).is_dir()


def read_world_toml(directory: Path | None = None) -> dict[str, Any]:
    path = (directory or Path.cwd()) / WORLD_TOML
    try:
        with open(path, "rb") as f:
            return tomli.load(f)
    except tomli.TOMLDecodeError as e:
        raise ValidationFailedError(f"Invalid {WORLD_TOML}: {e}") from e


def read_forge_project_name(directory: Path | None = None) -> str:
    """Read ``PROJECT_NAME`` from the ``[forge]`` section of world.toml.

    Returns:
        The project name, or an empty string when it isn't set.
    """
    try:
        data = read_world_toml(directory)
    except FileNotFoundError:
        return ""
    forge = data.get("forge")
    if not isinstance(forge, dict):
        return ""
    name = forge.get("PROJECT_NAME")
    return name if isinstance(name, str) else ""
