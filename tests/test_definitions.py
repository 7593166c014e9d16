from __future__ import annotations

import allure

from mobuild.process import Process
from mobuild.tasks import CleanFlags
from mobuild.tasks.definitions import BoostDi, create_tasks
from mobuild.tools import GitTool

pytestmark = [
    allure.epic("Tasks"),
    allure.feature("Task Definitions"),
]


def test_boost_di_names_and_source_path(settings) -> None:
    task = BoostDi()

    assert task.names == ("boost-di", "boostdi", "boost_di")
    assert task.source_path() == settings.paths.build / "di"


def test_boost_di_fetches_with_git(settings, monkeypatch) -> None:
    recorded: list[Process] = []

    def _record(self: GitTool, process: Process, *, check: bool = True) -> int:
        recorded.append(process)
        return 0

    monkeypatch.setattr(GitTool, "execute_and_join", _record)
    task = BoostDi()

    task.fetch()

    clone = recorded[0].arguments
    assert clone[0] == "clone"
    assert "https://github.com/boost-experimental/di.git" in clone
    assert clone[clone.index("--branch") + 1] == "cpp14"
    assert clone[-1] == str(settings.paths.build / "di")


def test_clean_deletes_checkout_on_redownload(settings) -> None:
    task = BoostDi()
    source = settings.paths.build / "di"
    (source / ".git").mkdir(parents=True)

    task.do_clean(CleanFlags.REDOWNLOAD)

    assert not source.exists()


def test_clean_keeps_checkout_on_rebuild(settings) -> None:
    task = BoostDi()
    source = settings.paths.build / "di"
    source.mkdir(parents=True)

    task.do_clean(CleanFlags.REBUILD)

    assert source.exists()


def test_create_tasks_registers_defaults(task_manager) -> None:
    tasks = create_tasks()

    assert task_manager.tasks() == tasks
    assert [task.name for task in tasks] == ["boost-di"]
