"""mobycli environment configuration.

Environment variables:
    DOCKER_COM_DOCKER_CLI: path of the delegated executable
        - overrides every other lookup when set and non-empty

    MOBYCLI_DEEPLINK_SCHEME: scheme of the hyperlinks written into stdout
        - default "docker-desktop"
        - e.g. "docker-desktop" -> docker-desktop://dashboard/containers/<id>

    MOBYCLI_LOG_DEBUG: debug logging
        - true/1/yes/on = DEBUG logs go to a temp file
        - false/0/no = off (default, warnings only, on stderr)
"""

from __future__ import annotations

import os
import sys
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

__all__ = [
    "Config",
    "load_config",
    "get_config",
    "reload_config",
    "COM_DOCKER_CLI",
    "CONTENT_HASH_PREFIX",
    "DEFAULT_DEEPLINK_SCHEME",
    "OVERRIDE_ENV",
    "REFRESH_COMMANDS",
    "SHORT_ID_LENGTH",
]

# Name of the classic docker CLI binary
COM_DOCKER_CLI = "com.docker.cli.exe" if sys.platform == "win32" else "com.docker.cli"

OVERRIDE_ENV = "DOCKER_COM_DOCKER_CLI"

DEFAULT_DEEPLINK_SCHEME = "docker-desktop"

SHORT_ID_LENGTH = 12

# Prefix of image content digests, dropped before truncating to a short id
CONTENT_HASH_PREFIX = "sha256:"

# Sub-commands that keep attached to the daemon and may create new objects
# while their output is streaming.
REFRESH_COMMANDS = frozenset({"run"})


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse a boolean environment variable."""
    if value is None:
        return default
    return value.strip().lower() in ("true", "1", "yes", "on")


def _parse_scheme(value: str | None) -> str:
    if not value or not value.strip():
        return DEFAULT_DEEPLINK_SCHEME
    return value.strip().rstrip(":/")


@dataclass
class Config:
    """mobycli configuration.

    Attributes:
        cli_override: explicit path of the delegated executable
        deeplink_scheme: scheme used in generated hyperlinks
        log_debug: write DEBUG logs to a temp file
        log_file: log file path (set when log_debug is True)
    """

    cli_override: str | None = None
    deeplink_scheme: str = DEFAULT_DEEPLINK_SCHEME
    log_debug: bool = False
    log_file: str | None = None

    def __repr__(self) -> str:
        return (
            f"Config(cli_override={self.cli_override}, "
            f"deeplink_scheme={self.deeplink_scheme}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file})"
        )


def _generate_log_file_path() -> str:
    """Build a timestamped log file path under the system temp directory."""
    log_dir = Path(tempfile.gettempdir()) / "mobycli"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"mobycli_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """Load configuration from the environment."""
    log_debug = _parse_bool(os.environ.get("MOBYCLI_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        cli_override=os.environ.get(OVERRIDE_ENV) or None,
        deeplink_scheme=_parse_scheme(os.environ.get("MOBYCLI_DEEPLINK_SCHEME")),
        log_debug=log_debug,
        log_file=log_file,
    )


# Global instance, created lazily
_config: Config | None = None


def get_config() -> Config:
    """Return the global configuration."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """Reload the global configuration (used by tests)."""
    global _config
    _config = load_config()
    return _config
