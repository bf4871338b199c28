"""Signal relay.

Forwards the signals delivered to this process to the delegated child, so
that Ctrl+C, SIGTERM, SIGTSTP, SIGWINCH and friends reach the docker CLI as
if it were running in the foreground on its own.

Handlers only enqueue; a dedicated task drains the queue and delivers the
signals in the order they were received. The task stops on an explicit
completion notification sent once the child has exited.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Optional

__all__ = [
    "RUNTIME_SIGNALS",
    "SignalRelay",
    "is_runtime_signal",
    "subscribable_signals",
]

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == "win32"


def _signals(*names: str) -> frozenset[signal.Signals]:
    return frozenset(getattr(signal, name) for name in names if hasattr(signal, name))


# Raised by the host runtime itself, never by an external sender
RUNTIME_SIGNALS = _signals("SIGCHLD", "SIGURG")

_UNCATCHABLE = _signals("SIGKILL", "SIGSTOP")

# Raised synchronously by faults in this process
_SYNCHRONOUS = _signals("SIGSEGV", "SIGBUS", "SIGFPE", "SIGILL")

_WINDOWS_SIGNALS = _signals("SIGINT", "SIGBREAK", "SIGTERM")

DEFAULT_QUEUE_SIZE = 64


def is_runtime_signal(sig: int) -> bool:
    """Whether ``sig`` is generated by the runtime and must not be forwarded."""
    return sig in RUNTIME_SIGNALS


def subscribable_signals() -> frozenset[signal.Signals]:
    """Signals the relay installs handlers for."""
    if IS_WINDOWS:
        return _WINDOWS_SIGNALS
    return frozenset(signal.valid_signals()) - _UNCATCHABLE - _SYNCHRONOUS - RUNTIME_SIGNALS


class SignalRelay:
    """Forwards received signals to a child process.

    Example:
        ```python
        relay = SignalRelay()
        await relay.start()
        process = await asyncio.create_subprocess_exec(...)
        relay.attach(process)
        try:
            await process.wait()
        finally:
            await relay.stop()
        ```

    Attributes:
        process: the child, None until attached
        forwarded: number of signals delivered to the child
    """

    def __init__(self, maxsize: int = DEFAULT_QUEUE_SIZE) -> None:
        self.process: Optional[asyncio.subprocess.Process] = None
        self.forwarded: int = 0
        self._maxsize = maxsize
        self._queue: Optional[asyncio.Queue[int]] = None
        self._child_exit: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task[None]] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._installed: list[int] = []
        self._original_handlers: dict[int, object] = {}

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def attach(self, process: asyncio.subprocess.Process) -> None:
        """Start forwarding to ``process``."""
        self.process = process

    async def start(self) -> None:
        """Install the signal handlers and start the relay task.

        Must be called from the main thread, inside the event loop.
        """
        if self.running:
            logger.warning("SignalRelay already running")
            return

        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=self._maxsize)
        self._child_exit = asyncio.Event()

        for sig in sorted(subscribable_signals()):
            try:
                original = signal.getsignal(sig)
                if IS_WINDOWS:
                    signal.signal(
                        sig,
                        lambda signum, frame: self._loop.call_soon_threadsafe(
                            self._on_signal, signum
                        ),
                    )
                else:
                    self._loop.add_signal_handler(sig, self._on_signal, sig)
                self._installed.append(sig)
                self._original_handlers[sig] = original
            except (OSError, RuntimeError, ValueError) as e:
                logger.debug(f"Cannot watch signal {sig}: {e}")

        self._task = asyncio.create_task(self._relay(), name="signal-relay")
        logger.debug(f"Signal relay started, watching {len(self._installed)} signal(s)")

    async def stop(self) -> None:
        """Send the completion notification and remove the handlers.

        Signals received after this call are not forwarded.
        """
        if self._child_exit is not None:
            self._child_exit.set()

        if self._task is not None:
            try:
                await self._task
            finally:
                self._task = None

        self._uninstall()
        logger.debug(f"Signal relay stopped, {self.forwarded} signal(s) forwarded")

    def _uninstall(self) -> None:
        # remove_signal_handler() resets to SIG_DFL; put back what was there
        for sig in self._installed:
            try:
                if not IS_WINDOWS and self._loop is not None:
                    self._loop.remove_signal_handler(sig)
                original = self._original_handlers.get(sig)
                if original is not None:
                    signal.signal(sig, original)
            except Exception as e:
                logger.debug(f"Error restoring handler for signal {sig}: {e}")
        self._installed.clear()
        self._original_handlers.clear()

    def _on_signal(self, sig: int) -> None:
        """Signal handler: enqueue without blocking."""
        if self._queue is None or self._child_exit is None or self._child_exit.is_set():
            return
        try:
            self._queue.put_nowait(sig)
        except asyncio.QueueFull:
            logger.warning(f"Signal queue full, dropping signal {sig}")

    async def _relay(self) -> None:
        if self._queue is None or self._child_exit is None:
            return
        child_exit = asyncio.ensure_future(self._child_exit.wait())
        try:
            while True:
                received = asyncio.ensure_future(self._queue.get())
                done, _ = await asyncio.wait(
                    {received, child_exit},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if child_exit in done:
                    received.cancel()
                    return
                self.forward(received.result())
        finally:
            child_exit.cancel()

    def forward(self, sig: int) -> bool:
        """Deliver ``sig`` to the child.

        Returns:
            True if the signal was sent
        """
        if self.process is None:
            # Received before the child was started
            logger.debug(f"Dropping signal {sig}: no child yet")
            return False
        if is_runtime_signal(sig):
            return False
        try:
            self.process.send_signal(_to_child_signal(sig))
        except ProcessLookupError:
            logger.debug(f"Dropping signal {sig}: child already exited")
            return False
        self.forwarded += 1
        logger.debug(f"Forwarded signal {sig} to pid={self.process.pid}")
        return True


def _to_child_signal(sig: int) -> int:
    if IS_WINDOWS:
        # Console control events are the only signals a Windows child can receive
        if sig == signal.SIGINT:
            return signal.CTRL_C_EVENT
        if sig == getattr(signal, "SIGBREAK", None):
            return signal.CTRL_BREAK_EVENT
    return sig
