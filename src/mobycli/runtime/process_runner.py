"""Process runner for helper invocations and reliable termination.

This module provides:
- One-shot capture of a helper process (stdout/stderr/returncode)
- Reliable termination with graceful shutdown (terminate -> timeout -> kill)
- Cancel-safe cleanup using asyncio.shield

Delegated processes are never moved to their own session or process group:
they must stay in the terminal's foreground job so that job control keeps
working.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

__all__ = [
    "CompletedRun",
    "ProcessRunner",
    "ProcessSpec",
]

logger = logging.getLogger(__name__)

# Default timeouts
DEFAULT_TERM_TIMEOUT = 2.0  # seconds to wait after terminate()
DEFAULT_KILL_TIMEOUT = 1.0  # seconds to wait after kill()


@dataclass(frozen=True)
class ProcessSpec:
    """Specification for a subprocess to run.

    Attributes:
        argv: Command line arguments (first element is the executable)
        env: Environment variables (None = inherit parent)
        cwd: Working directory (None = inherit parent)
    """

    argv: list[str]
    env: Mapping[str, str] | None = None
    cwd: Path | None = None


@dataclass(frozen=True)
class CompletedRun:
    """Result of a captured run."""

    stdout: bytes
    stderr: bytes
    returncode: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass
class ProcessRunner:
    """Runs helper processes and terminates leftovers.

    Example:
        runner = ProcessRunner()
        result = await runner.capture(
            ProcessSpec(argv=["com.docker.cli", "volume", "ls"])
        )
        if result.ok:
            handle(result.stdout)
    """

    term_timeout: float = DEFAULT_TERM_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT

    async def capture(
        self,
        spec: ProcessSpec,
        *,
        stdin: int | None = asyncio.subprocess.DEVNULL,
        stderr: int | None = asyncio.subprocess.PIPE,
    ) -> CompletedRun:
        """Run a process to completion and collect its output.

        Args:
            spec: Process specification
            stdin: stdin disposition (DEVNULL by default, None inherits)
            stderr: stderr disposition (PIPE by default, None inherits,
                STDOUT merges it into stdout)

        Returns:
            CompletedRun with stdout, stderr (empty unless piped) and returncode

        Raises:
            OSError: If the process cannot be started
        """
        process: asyncio.subprocess.Process | None = None
        try:
            process = await asyncio.create_subprocess_exec(
                *spec.argv,
                stdin=stdin,
                stdout=asyncio.subprocess.PIPE,
                stderr=stderr,
                **self._build_subprocess_kwargs(spec),
            )
            logger.debug(f"Started helper pid={process.pid} argv={spec.argv[1:]}")

            stdout, err = await process.communicate()

            logger.debug(
                f"Helper completed pid={process.pid} "
                f"returncode={process.returncode}"
            )
            return CompletedRun(
                stdout=stdout or b"",
                stderr=err or b"",
                returncode=process.returncode if process.returncode is not None else -1,
            )
        finally:
            await self.safe_cleanup(process)

    def _build_subprocess_kwargs(self, spec: ProcessSpec) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        if spec.env is not None:
            kwargs["env"] = dict(spec.env)
        if spec.cwd is not None:
            kwargs["cwd"] = spec.cwd
        return kwargs

    async def safe_cleanup(
        self,
        process: asyncio.subprocess.Process | None,
    ) -> None:
        """Terminate a process that is still running, shielded from cancellation.

        Args:
            process: The subprocess, or None when it never started
        """
        if process is None or process.returncode is not None:
            return
        try:
            await asyncio.shield(self.terminate(process))
        except asyncio.CancelledError:
            # If shield itself is cancelled, still try cleanup
            await self.terminate(process)
            raise

    async def terminate(
        self,
        process: asyncio.subprocess.Process,
    ) -> None:
        """Terminate subprocess gracefully, then forcefully if needed.

        Termination strategy:
        1. terminate() (SIGTERM on POSIX, TerminateProcess on Windows)
        2. Wait up to term_timeout for graceful exit
        3. If still running, kill()
        4. Wait up to kill_timeout for forced exit

        Args:
            process: The subprocess to terminate
        """
        pid = process.pid
        logger.debug(f"Terminating subprocess pid={pid}")

        try:
            process.terminate()

            try:
                await asyncio.wait_for(process.wait(), timeout=self.term_timeout)
                logger.debug(
                    f"Subprocess terminated gracefully pid={pid} "
                    f"returncode={process.returncode}"
                )
                return
            except asyncio.TimeoutError:
                pass

            logger.debug(f"Force killing subprocess pid={pid}")
            process.kill()

            try:
                await asyncio.wait_for(process.wait(), timeout=self.kill_timeout)
                logger.debug(
                    f"Subprocess killed pid={pid} "
                    f"returncode={process.returncode}"
                )
            except asyncio.TimeoutError:
                logger.warning(f"Subprocess did not exit after kill pid={pid}")

        except ProcessLookupError:
            # Process already exited
            logger.debug(f"Subprocess already exited pid={pid}")
