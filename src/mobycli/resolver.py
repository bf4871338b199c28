"""Lookup of the delegated docker CLI executable.

Resolution order:
1. DOCKER_COM_DOCKER_CLI, when set
2. a file with the CLI's name next to the running executable (symlinks resolved)
3. the PATH search
"""

from __future__ import annotations

import logging
import os
import shutil
import sys
from pathlib import Path

from .config import COM_DOCKER_CLI, get_config
from .errors import ResolutionError

__all__ = [
    "com_docker_cli",
    "current_executable",
    "find_sibling",
    "resolve_executable",
]

logger = logging.getLogger(__name__)


def current_executable() -> Path | None:
    """Resolved path of the running program, or None if it cannot be located."""
    argv0 = sys.argv[0] if sys.argv else ""
    if not argv0:
        return None
    candidate = Path(argv0)
    if not candidate.is_file():
        found = shutil.which(argv0)
        if found is None:
            return None
        candidate = Path(found)
    try:
        return candidate.resolve(strict=True)
    except OSError:
        return None


def find_sibling(filename: str, executable: Path | None) -> str | None:
    """Return ``<dir of executable>/<filename>`` if that file exists."""
    if executable is None:
        return None
    try:
        executable = executable.resolve(strict=True)
    except OSError:
        return None
    binary = executable.parent / filename
    if not binary.exists():
        return None
    return str(binary)


def resolve_executable(
    name: str = COM_DOCKER_CLI,
    *,
    override: str | None = None,
    current: Path | None = None,
    search_path: str | None = None,
) -> str:
    """Locate the delegated executable.

    Args:
        name: Executable name to look for
        override: Explicit path, used as is when non-empty
        current: Path of the running executable
        search_path: PATH-style search list (None = $PATH)

    Returns:
        Path of the executable

    Raises:
        ResolutionError: If no candidate exists
    """
    if override:
        logger.debug(f"Using {name} override: {override}")
        return override

    sibling = find_sibling(name, current)
    if sibling is not None:
        logger.debug(f"Using {name} next to current executable: {sibling}")
        return sibling

    if search_path is None:
        search_path = os.environ.get("PATH", os.defpath)
    found = shutil.which(name, path=search_path)
    if found is None:
        raise ResolutionError(name, search_path)
    logger.debug(f"Using {name} from search path: {found}")
    return found


def com_docker_cli() -> str:
    """Path of the docker CLI; exits the process if it cannot be found."""
    try:
        return resolve_executable(
            COM_DOCKER_CLI,
            override=get_config().cli_override,
            current=current_executable(),
        )
    except ResolutionError as e:
        print(e, file=sys.stderr)
        print("Current PATH : " + os.environ.get("PATH", ""), file=sys.stderr)
        sys.exit(1)
