"""Tasks and the registry that tracks them."""

from mobuild.tasks.manager import TaskManager
from mobuild.tasks.task import (
    CleanFlags,
    ParallelTaskGroup,
    Task,
    TaskState,
    clean_flags_to_string,
    make_clean_flags,
    strings_match,
)

__all__ = [
    "CleanFlags",
    "ParallelTaskGroup",
    "Task",
    "TaskManager",
    "TaskState",
    "clean_flags_to_string",
    "make_clean_flags",
    "strings_match",
]
