from __future__ import annotations

from pathlib import Path

import allure
import pytest

from mobuild.context import ExecutionContext
from mobuild.errors import Bailed, ToolConfigError
from mobuild.process import Process
from mobuild.tasks import Task
from mobuild.tools import GIT_MARKER, GitOp, GitTool

pytestmark = [
    allure.epic("Tools"),
    allure.feature("Git Synchronization"),
]

URL = "https://example/repo.git"


class _RecordingGit(GitTool):
    def __init__(self, op: GitOp = GitOp.CLONE_OR_PULL) -> None:
        super().__init__(op)
        self.processes: list[Process] = []

    def execute_and_join(self, process: Process, *, check: bool = True) -> int:
        self.processes.append(process)
        return 0

    @property
    def commands(self) -> list[str]:
        return [process.arguments[0] for process in self.processes]


def _run(tool: GitTool) -> None:
    tool.run(ExecutionContext("test"))


def _checkout(path: Path) -> Path:
    (path / GIT_MARKER).mkdir(parents=True)
    return path


def test_clone_or_pull_clones_into_empty_destination(settings, tmp_path) -> None:
    destination = tmp_path / "repo"
    destination.mkdir()
    tool = _RecordingGit().url(URL).branch("main").output(destination)

    _run(tool)

    assert tool.commands == ["clone"]
    clone = tool.processes[0].arguments
    assert clone[:4] == ["clone", "--recurse-submodules", "--depth", "1"]
    assert "--single-branch" in clone
    assert clone[clone.index("--branch") + 1] == "main"
    assert clone[-2:] == [URL, str(destination)]


def test_clone_creates_missing_parent_directories(settings, tmp_path) -> None:
    destination = tmp_path / "build" / "vendor" / "repo"
    tool = _RecordingGit(GitOp.CLONE).url(URL).output(destination)

    _run(tool)

    assert tool.commands == ["clone"]
    assert destination.parent.is_dir()
    assert not destination.exists()


def test_clone_or_pull_pulls_existing_checkout(settings, tmp_path) -> None:
    destination = _checkout(tmp_path / "repo")
    tool = _RecordingGit().url(URL).branch("main").output(destination)

    _run(tool)

    assert tool.commands == ["pull"]
    pull = tool.processes[0]
    assert pull.working_directory == destination
    assert pull.arguments[-2:] == [URL, "main"]


def test_clone_skips_existing_checkout(settings, tmp_path) -> None:
    destination = _checkout(tmp_path / "repo")
    tool = _RecordingGit(GitOp.CLONE).url(URL).branch("main").output(destination)

    _run(tool)

    assert tool.processes == []
    assert tool.do_clone() is False


def test_pull_mode_always_pulls(settings, tmp_path) -> None:
    destination = tmp_path / "repo"
    tool = _RecordingGit(GitOp.PULL).url(URL).branch("main").output(destination)

    _run(tool)

    assert tool.commands == ["pull"]


def test_quiet_arguments_are_hidden_from_debug_command_line(settings, tmp_path) -> None:
    tool = _RecordingGit(GitOp.CLONE).url(URL).branch("main").output(tmp_path / "repo")

    _run(tool)

    clone = tool.processes[0]
    assert "--quiet" in clone.arguments
    assert "--quiet" not in clone.command_line(include_quiet=False)
    assert "advice.detachedHead=false" not in clone.command_line(include_quiet=False)


def test_shallow_disabled_omits_depth(settings, tmp_path) -> None:
    tool = _RecordingGit().url(URL).branch("main").output(tmp_path / "repo").shallow(False)

    _run(tool)

    assert "--depth" not in tool.processes[0].arguments


@pytest.mark.parametrize("missing", ["url", "output"])
def test_missing_parameters_bail_out(settings, tmp_path, missing: str) -> None:
    tool = _RecordingGit().branch("main")
    if missing != "url":
        tool.url(URL)
    if missing != "output":
        tool.output(tmp_path / "repo")

    with pytest.raises(ToolConfigError) as raised:
        _run(tool)

    assert isinstance(raised.value, Bailed)
    assert tool.processes == []


def test_redownload_deletes_destination_then_clones(settings, tmp_path) -> None:
    settings.switches.redownload = True
    destination = _checkout(tmp_path / "repo")
    (destination / "stale.txt").write_text("old", "utf-8")
    tool = _RecordingGit().url(URL).branch("main").output(destination)

    _run(tool)

    assert not destination.exists()
    assert tool.commands == ["clone"]


def test_reextract_with_missing_destination_is_not_an_error(settings, tmp_path) -> None:
    settings.switches.reextract = True
    tool = _RecordingGit().url(URL).branch("main").output(tmp_path / "missing")

    _run(tool)

    assert tool.commands == ["clone"]


def test_credentials_are_configured_after_clone(settings, tmp_path) -> None:
    destination = tmp_path / "repo"
    tool = (
        _RecordingGit()
        .url(URL)
        .branch("main")
        .output(destination)
        .credentials("builder", "builder@example.com")
    )

    _run(tool)

    assert [p.arguments for p in tool.processes[1:]] == [
        ["config", "user.name", "builder"],
        ["config", "user.email", "builder@example.com"],
    ]
    assert all(p.working_directory == destination for p in tool.processes[1:])


def test_remote_setup_renames_origin_and_adds_fork(settings, tmp_path) -> None:
    tool = (
        _RecordingGit()
        .url(URL)
        .branch("main")
        .output(tmp_path / "repo")
        .remote("me", no_push_upstream=True, push_default_origin=True)
    )

    _run(tool)

    assert [p.arguments for p in tool.processes[1:]] == [
        ["remote", "rename", "origin", "upstream"],
        ["remote", "set-url", "--push", "upstream", "nopushurl"],
        ["remote", "add", "origin", "git@github.com:me/repo.git"],
        ["config", "remote.pushdefault", "origin"],
    ]


def test_git_binary_comes_from_settings(settings, tmp_path) -> None:
    settings.tools.git = "/opt/git/bin/git"
    tool = _RecordingGit().url(URL).branch("main").output(tmp_path / "repo")

    _run(tool)

    assert tool.processes[0].command_line().startswith("/opt/git/bin/git clone")


def test_make_git_follows_task_configuration(settings) -> None:
    task = Task("boost-di")
    assert task.make_git().op is GitOp.CLONE_OR_PULL

    settings.task_defaults.no_pull = True
    assert task.make_git().op is GitOp.CLONE


def test_interrupted_tool_does_not_start_processes(settings, tmp_path) -> None:
    tool = GitTool(GitOp.CLONE).url(URL).branch("main").output(tmp_path / "repo")
    tool.interrupt()

    _run(tool)

    assert not (tmp_path / "repo").exists()
