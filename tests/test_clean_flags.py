from __future__ import annotations

import allure

from mobuild.config import GlobalSwitches
from mobuild.tasks import CleanFlags, Task, clean_flags_to_string, make_clean_flags

pytestmark = [
    allure.epic("Task Engine"),
    allure.feature("Clean Phase"),
]


class _CleanRecorder(Task):
    def __init__(self) -> None:
        super().__init__("cleaner")
        self.cleaned: list[CleanFlags] = []

    def do_clean(self, flags: CleanFlags) -> None:
        self.cleaned.append(flags)


def test_make_clean_flags_combines_enabled_switches() -> None:
    flags = make_clean_flags(GlobalSwitches(redownload=True, rebuild=True))

    assert flags == CleanFlags.REDOWNLOAD | CleanFlags.REBUILD
    assert clean_flags_to_string(flags) == "redownload|rebuild"


def test_clean_flags_string_keeps_declaration_order() -> None:
    flags = CleanFlags.REBUILD | CleanFlags.REDOWNLOAD | CleanFlags.RECONFIGURE

    assert clean_flags_to_string(flags) == "redownload|reconfigure|rebuild"


def test_nothing_is_zero_value() -> None:
    flags = make_clean_flags(GlobalSwitches())

    assert flags == CleanFlags.NOTHING
    assert not flags
    assert clean_flags_to_string(flags) == ""


def test_clean_task_passes_flags_to_hook(settings) -> None:
    settings.switches.clean = True
    settings.switches.reextract = True
    task = _CleanRecorder()

    task.clean_task()

    assert task.cleaned == [CleanFlags.REEXTRACT]


def test_clean_task_skipped_when_switch_off(settings) -> None:
    settings.switches.redownload = True
    task = _CleanRecorder()

    task.clean_task()

    assert task.cleaned == []


def test_clean_task_with_no_flags_does_nothing(settings) -> None:
    settings.switches.clean = True
    task = _CleanRecorder()

    task.clean_task()

    assert task.cleaned == []
