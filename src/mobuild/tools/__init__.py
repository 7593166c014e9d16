"""Tools wrapping external operations."""

from mobuild.tools.base import ProcessTool, Tool
from mobuild.tools.git import GIT_MARKER, GitOp, GitTool
from mobuild.tools.patcher import Patcher

__all__ = [
    "GIT_MARKER",
    "GitOp",
    "GitTool",
    "Patcher",
    "ProcessTool",
    "Tool",
]
