"""Runtime module for short-lived helper processes.

This module runs the listing and command-check invocations of the delegated CLI
and terminates processes that are left behind when a delegation is
cancelled by its host.
"""

from __future__ import annotations

from .process_runner import CompletedRun, ProcessRunner, ProcessSpec

__all__ = [
    "CompletedRun",
    "ProcessRunner",
    "ProcessSpec",
]
