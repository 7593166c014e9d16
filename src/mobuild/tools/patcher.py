"""Applies a task's known patches to its source tree."""

from __future__ import annotations

from pathlib import Path

from mobuild.config import get_settings
from mobuild.context import TRACE, Reason
from mobuild.errors import ToolConfigError
from mobuild.process import Process
from mobuild.tools.base import ProcessTool

PATCH_GLOB = "*.patch"


class Patcher(ProcessTool):
    """Applies ``<patches>/<task>/*.patch`` that are not already applied."""

    def __init__(self) -> None:
        super().__init__("patcher")
        self._task = ""
        self._prebuilt = False
        self._root: Path | None = None

    def task(self, name: str, prebuilt: bool = False) -> Patcher:
        self._task = name
        self._prebuilt = prebuilt
        return self

    def root(self, path: Path) -> Patcher:
        self._root = path
        return self

    def patches_dir(self) -> Path:
        directory = get_settings().paths.patches / self._task
        if self._prebuilt:
            directory = directory / "prebuilt"
        return directory

    def do_run(self) -> None:
        if not self._task or self._root is None:
            self.cx.error(Reason.GENERIC, "patcher missing parameters")
            raise ToolConfigError("patcher missing parameters")

        directory = self.patches_dir()
        if not directory.is_dir():
            self.cx.trace(Reason.GENERIC, "no patches in %s", directory)
            return

        patches = sorted(directory.glob(PATCH_GLOB))
        if not patches:
            self.cx.trace(Reason.GENERIC, "no patches in %s", directory)
            return

        for patch in patches:
            if self.interrupted:
                return
            self._apply(patch.resolve())

    def _apply(self, patch: Path) -> None:
        check = self._git_apply().arg("--reverse", "--check", patch)
        if self.execute_and_join(check, check=False) == 0:
            self.cx.trace(Reason.GENERIC, "patch %s already applied", patch.name)
            return

        self.cx.debug(Reason.GENERIC, "applying patch %s", patch.name)
        self.execute_and_join(self._git_apply().arg("--whitespace=nowarn", patch))

    def _git_apply(self) -> Process:
        root = self._root
        if root is None:
            raise ToolConfigError("patcher missing root")
        return (
            Process()
            .binary(get_settings().tools.git)
            .stderr_level(TRACE)
            .arg("apply")
            .cwd(root)
        )
