"""Delegation of commands to the classic docker CLI.

``run_docker`` runs the CLI as if it were invoked directly: stdin and
stderr are inherited, signals are relayed, and stdout goes through a pipe
to the stream enricher, which turns known identifiers into hyperlinks.

Sequence of one delegation:
1. load the initial catalog
2. start the signal relay, then the child
3. enrich stdout concurrently while the child runs
4. wait for the child, then for the enricher to drain the pipe
   (if the enricher fails first, its error is raised and the child stopped)
5. stop the relay and report the child's outcome
"""

from __future__ import annotations

import asyncio
import logging
import re
import sys
from collections.abc import Sequence
from typing import BinaryIO

from .catalog import CatalogLoader
from .enrichment import LINE_LIMIT, StreamEnricher, should_refresh
from .errors import ChildExecutionError
from .resolver import com_docker_cli
from .runtime import ProcessRunner, ProcessSpec
from .signal_relay import SignalRelay

__all__ = [
    "exec_silent",
    "is_default_context_command",
    "run_docker",
]

logger = logging.getLogger(__name__)


async def run_docker(
    args: Sequence[str],
    *,
    executable: str | None = None,
    output: BinaryIO | None = None,
    loader: CatalogLoader | None = None,
    runner: ProcessRunner | None = None,
) -> None:
    """Run the docker CLI with ``args`` and enrich its stdout.

    Args:
        args: Command line without the program name
        executable: CLI path (default: resolved, exiting if not found)
        output: Binary stream receiving stdout (default: sys.stdout.buffer)
        loader: Catalog loader (default: one querying ``executable``)
        runner: Used to terminate the child if this coroutine is cancelled

    Raises:
        ChildExecutionError: If the CLI cannot be started or exits non-zero
    """
    args = list(args)
    if executable is None:
        executable = com_docker_cli()
    if loader is None:
        loader = CatalogLoader(executable)
    if runner is None:
        runner = ProcessRunner()

    catalog = await loader.load()
    enricher = StreamEnricher(
        loader,
        catalog,
        refresh=should_refresh(args),
        output=output,
    )

    relay = SignalRelay()
    process: asyncio.subprocess.Process | None = None
    enrich_task: asyncio.Task[int] | None = None
    wait_task: asyncio.Task[int] | None = None

    await relay.start()
    try:
        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *args,
                stdin=None,
                stdout=asyncio.subprocess.PIPE,
                stderr=None,
                limit=LINE_LIMIT,
            )
        except OSError as e:
            raise ChildExecutionError(f"fork/exec {executable}: {e.strerror or e}") from e

        relay.attach(process)
        logger.debug(f"Delegated pid={process.pid} args={args}")

        enrich_task = asyncio.create_task(
            enricher.run(process.stdout), name="stream-enricher"
        )

        wait_task = asyncio.create_task(process.wait(), name="child-wait")
        done, _ = await asyncio.wait(
            {wait_task, enrich_task}, return_when=asyncio.FIRST_COMPLETED
        )
        if enrich_task in done and enrich_task.exception() is not None:
            # Nobody reads the pipe any more; the child would block on it
            logger.debug(f"Enricher failed, stopping pid={process.pid}")
            enrich_task.result()

        returncode = await wait_task
        emitted = await enrich_task

        logger.debug(
            f"Delegated pid={process.pid} returncode={returncode} "
            f"lines={emitted}"
        )
    finally:
        if wait_task is not None and not wait_task.done():
            wait_task.cancel()
        if enrich_task is not None and not enrich_task.done():
            enrich_task.cancel()
            try:
                await enrich_task
            except asyncio.CancelledError:
                pass
        await runner.safe_cleanup(process)
        await relay.stop()

    if returncode != 0:
        raise ChildExecutionError.from_returncode(returncode)


async def exec_silent(
    args: Sequence[str] | None = None,
    *,
    executable: str | None = None,
    runner: ProcessRunner | None = None,
) -> bytes:
    """Run the docker CLI and return its stdout instead of printing it.

    Without ``args`` this process's own arguments are passed on.

    stderr is passed through to this process's stderr.

    Raises:
        ChildExecutionError: If the CLI cannot be started or exits non-zero
    """
    args = list(args or ()) or sys.argv[1:]
    if executable is None:
        executable = com_docker_cli()
    runner = runner or ProcessRunner()

    spec = ProcessSpec(argv=[executable, *args])
    try:
        result = await runner.capture(spec, stderr=None)
    except OSError as e:
        raise ChildExecutionError(f"fork/exec {executable}: {e.strerror or e}") from e
    if not result.ok:
        raise ChildExecutionError.from_returncode(result.returncode)
    return result.stdout


async def is_default_context_command(
    command: str,
    *,
    executable: str | None = None,
    runner: ProcessRunner | None = None,
) -> bool:
    """Whether the classic docker CLI knows ``command``.

    Asks ``<command> --help`` and looks for the CLI's usage line.
    """
    if executable is None:
        executable = com_docker_cli()
    runner = runner or ProcessRunner()

    spec = ProcessSpec(argv=[executable, command, "--help"])
    try:
        result = await runner.capture(spec, stderr=asyncio.subprocess.STDOUT)
    except OSError as e:
        print(e)
        return False
    if not result.ok:
        print(ChildExecutionError.from_returncode(result.returncode))

    output = result.stdout.decode("utf-8", errors="replace")
    return re.search(r"Usage:\s*docker\s*" + re.escape(command), output) is not None
