"""mobycli - runs the classic docker CLI and links identifiers in its output.

Environment variables:
    DOCKER_COM_DOCKER_CLI: path of the docker CLI to delegate to
    MOBYCLI_DEEPLINK_SCHEME: hyperlink scheme (default docker-desktop)
    MOBYCLI_LOG_DEBUG: write debug logs to a temp file (default false)

Usage:
    mobycli ps -a
"""

__version__ = "0.1.0"

from .app import main

__all__ = ["__version__", "main"]
