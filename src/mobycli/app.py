"""mobycli application entry point.

Runs the delegation and turns its outcome into this process's exit status.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Sequence
from typing import NoReturn

from .config import Config, get_config
from .delegate import run_docker
from .errors import ChildExecutionError

__all__ = ["configure_logging", "exec_command", "main"]

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(config: Config) -> None:
    """Configure log output.

    stderr belongs to the delegated CLI, so only warnings are printed there.
    With MOBYCLI_LOG_DEBUG everything goes to a temp file instead.
    """
    log_handlers: list[logging.Handler] = []

    if config.log_debug and config.log_file:
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(stderr_handler)
        log_level = logging.WARNING

    # Third-party libraries stay at WARNING
    logging.basicConfig(
        level=logging.WARNING,
        handlers=log_handlers,
    )
    logging.getLogger("mobycli").setLevel(log_level)


def exec_command(args: Sequence[str] | None = None) -> NoReturn:
    """Delegate ``args`` (default: ``sys.argv[1:]``) and exit with the CLI's status."""
    if args is None:
        args = sys.argv[1:]

    try:
        asyncio.run(run_docker(args))
    except ChildExecutionError as e:
        if e.exit_code is not None:
            logger.debug(f"Delegated command failed: {e}")
            sys.exit(e.exit_code)
        print(e, file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        # Interrupted before the relay was installed
        sys.exit(130)

    sys.exit(0)


def main() -> None:
    """Main entry point."""
    config = get_config()
    configure_logging(config)
    logger.debug(f"Starting mobycli: {config}")
    exec_command()


if __name__ == "__main__":
    main()
