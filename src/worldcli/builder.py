"""Build the game image with the local docker CLI."""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

from .errors import BuildError
from .logging import get_logger
from .repo import GitError, get_commit_hash

logger = get_logger(__name__)

IMAGE_TARBALL = "image.tar"


@dataclass(frozen=True)
class BuiltImage:
    """A saved image ready for upload."""

    tag: str
    commit_hash: str
    tarball: Path


def _run_docker(args: list[str], cwd: Path) -> None:
    docker_path = shutil.which("docker")
    if docker_path is None:
        raise BuildError("docker executable not found on PATH", hint="Install Docker and make sure it is running.")
    logger.debug(f"Running docker {' '.join(args)} in {cwd}")
    completed = subprocess.run(
        [docker_path, *args],
        cwd=str(cwd),
        check=False,
        text=True,
        capture_output=True,
    )
    if completed.returncode != 0:
        raise BuildError(f"docker {args[0]} failed: {completed.stderr.strip() or completed.stdout.strip()}")


def build_image(project_root: Path, image_name: str, output_dir: Path) -> BuiltImage:
    """Build the image in ``project_root`` and save it to ``output_dir``.

    The image is tagged with the HEAD commit hash of the repository.

    Args:
        project_root: Directory holding the Dockerfile (the world project root).
        image_name: Repository part of the image tag, usually the project slug.
        output_dir: Where the ``image.tar`` tarball is written.

    Returns:
        The built image.

    Raises:
        BuildError: If git or docker fails.
    """
    try:
        commit_hash = get_commit_hash(project_root)
    except GitError as e:
        raise BuildError(f"Failed to read the current commit: {e}") from e

    tag = f"{image_name}:{commit_hash}"
    tarball = output_dir / IMAGE_TARBALL

    _run_docker(["build", "-t", tag, "."], cwd=project_root)
    _run_docker(["save", "-o", str(tarball), tag], cwd=project_root)

    logger.debug(f"Saved {tag} to {tarball}")
    return BuiltImage(tag=tag, commit_hash=commit_hash, tarball=tarball)
