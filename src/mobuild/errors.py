"""Control-flow signals shared by tasks and tools."""

from __future__ import annotations


class Interrupted(Exception):
    """Raised at a checkpoint once a task has been interrupted."""


class Bailed(Exception):
    """Unrecoverable failure; every registered task gets interrupted."""


class ToolConfigError(Bailed):
    """A tool was run without its required parameters."""
