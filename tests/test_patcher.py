from __future__ import annotations

from pathlib import Path

import allure
import pytest

from mobuild.context import ExecutionContext
from mobuild.errors import ToolConfigError
from mobuild.process import Process
from mobuild.tools import Patcher

pytestmark = [
    allure.epic("Tools"),
    allure.feature("Patch Application"),
]


class _RecordingPatcher(Patcher):
    def __init__(self, *, applied: bool) -> None:
        super().__init__()
        self.applied = applied
        self.calls: list[list[str]] = []

    def execute_and_join(self, process: Process, *, check: bool = True) -> int:
        self.calls.append(process.arguments)
        if "--reverse" in process.arguments:
            return 0 if self.applied else 1
        return 0


def _write_patches(directory: Path, *names: str) -> None:
    directory.mkdir(parents=True)
    for name in names:
        (directory / name).write_text("--- a\n+++ b\n", "utf-8")


def _run(patcher: Patcher) -> None:
    patcher.run(ExecutionContext("test"))


def test_applies_patches_in_sorted_order(settings, tmp_path) -> None:
    _write_patches(settings.paths.patches / "boost-di", "0002-b.patch", "0001-a.patch")
    patcher = _RecordingPatcher(applied=False).task("boost-di").root(tmp_path)

    _run(patcher)

    names = [Path(call[-1]).name for call in patcher.calls]
    assert names == ["0001-a.patch", "0001-a.patch", "0002-b.patch", "0002-b.patch"]
    assert patcher.calls[0][:3] == ["apply", "--reverse", "--check"]
    assert patcher.calls[1][:2] == ["apply", "--whitespace=nowarn"]


def test_already_applied_patches_are_skipped(settings, tmp_path) -> None:
    _write_patches(settings.paths.patches / "boost-di", "0001-a.patch")
    patcher = _RecordingPatcher(applied=True).task("boost-di").root(tmp_path)

    _run(patcher)

    assert len(patcher.calls) == 1
    assert "--reverse" in patcher.calls[0]


def test_missing_patch_directory_is_not_an_error(settings, tmp_path) -> None:
    patcher = _RecordingPatcher(applied=False).task("zlib").root(tmp_path)

    _run(patcher)

    assert patcher.calls == []


def test_prebuilt_patches_live_in_subdirectory(settings, tmp_path) -> None:
    _write_patches(settings.paths.patches / "qt" / "prebuilt", "0001-a.patch")
    patcher = _RecordingPatcher(applied=False).task("qt", prebuilt=True).root(tmp_path)

    _run(patcher)

    assert patcher.patches_dir() == settings.paths.patches / "qt" / "prebuilt"
    assert len(patcher.calls) == 2


def test_missing_root_is_a_configuration_error(settings) -> None:
    patcher = _RecordingPatcher(applied=False).task("zlib")

    with pytest.raises(ToolConfigError):
        _run(patcher)
