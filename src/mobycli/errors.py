"""mobycli exception classes."""

from __future__ import annotations

__all__ = [
    "MobyCliError",
    "ResolutionError",
    "CatalogLoadError",
    "RecordParseError",
    "ChildExecutionError",
]


class MobyCliError(Exception):
    """Base class of mobycli errors."""
    pass


class ResolutionError(MobyCliError):
    """The delegated executable could not be found.

    Attributes:
        name: executable name that was looked up
        search_path: search path that was used
    """

    def __init__(self, name: str, search_path: str) -> None:
        self.name = name
        self.search_path = search_path
        super().__init__(f'exec: "{name}": executable file not found in $PATH')


class CatalogLoadError(MobyCliError):
    """A listing sub-command failed to run or exited non-zero."""

    def __init__(self, kind: str, reason: str) -> None:
        self.kind = kind
        self.reason = reason
        super().__init__(f"cannot list {kind}: {reason}")


class RecordParseError(MobyCliError):
    """One line of a listing could not be turned into a record."""

    def __init__(self, kind: str, line: str) -> None:
        self.kind = kind
        self.line = line
        super().__init__(f"malformed {kind} record: {line!r}")


class ChildExecutionError(MobyCliError):
    """The delegated process failed to start or exited non-zero.

    Attributes:
        exit_code: exit status to propagate, None when the process never started
    """

    def __init__(self, message: str, exit_code: int | None = None) -> None:
        self.exit_code = exit_code
        super().__init__(message)

    @classmethod
    def from_returncode(cls, returncode: int) -> "ChildExecutionError":
        """Build the error for a finished process.

        asyncio reports death by signal N as -N; shells report 128 + N.
        """
        if returncode < 0:
            return cls(f"signal: {-returncode}", exit_code=128 - returncode)
        return cls(f"exit status {returncode}", exit_code=returncode)
