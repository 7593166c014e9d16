"""Filesystem operations that log through the task context."""

from __future__ import annotations

import os
import shutil
import stat
from pathlib import Path

from mobuild.context import ExecutionContext, Reason


def create_directories(cx: ExecutionContext, path: Path) -> None:
    if path.exists():
        return
    cx.trace(Reason.FS, "creating dir %s", path)
    path.mkdir(parents=True, exist_ok=True)


def delete_directory(cx: ExecutionContext, path: Path, *, optional: bool = False) -> None:
    """Delete a directory tree; a missing directory is an error unless optional."""

    if not path.exists():
        if optional:
            cx.trace(Reason.FS, "not deleting dir %s, doesn't exist (optional)", path)
            return
        cx.bail_out(Reason.FS, "can't delete dir %s, doesn't exist", path)

    if not path.is_dir():
        cx.bail_out(Reason.FS, "%s is not a directory", path)

    cx.trace(Reason.FS, "deleting dir %s", path)
    shutil.rmtree(path, onexc=_clear_readonly_and_retry)


def _clear_readonly_and_retry(function, path: str, _exc: BaseException) -> None:
    # git pack files are read-only on some platforms
    os.chmod(path, stat.S_IWRITE)
    function(path)
