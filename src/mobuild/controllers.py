"""Controllers for build CLI commands."""

from __future__ import annotations

import logging
import signal
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path

from mobuild.config import Settings, set_settings
from mobuild.errors import Bailed
from mobuild.process import ProcessError
from mobuild.tasks import ParallelTaskGroup, Task, TaskManager
from mobuild.tasks.definitions import create_tasks

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ListTasksCommand:
    """CLI input for task listing."""

    patterns: tuple[str, ...]


@dataclass(slots=True)
class BuildCommand:  # noqa: PLR0902
    """CLI input for running tasks."""

    patterns: tuple[str, ...]
    clean: bool | None = None
    fetch: bool | None = None
    build: bool | None = None
    redownload: bool = False
    reextract: bool = False
    reconfigure: bool = False
    rebuild: bool = False
    no_pull: bool = False
    parallel: bool = False
    build_dir: Path | None = None
    patches_dir: Path | None = None


@dataclass(slots=True)
class CommandResult:
    """Lines to render in CLI and overall outcome."""

    lines: list[str]
    success: bool


class BuildCliController:
    """Selects tasks from the registry and runs them."""

    def __init__(self, manager: TaskManager | None = None) -> None:
        self.manager = manager or TaskManager.instance()

    def list_tasks(self, command: ListTasksCommand) -> CommandResult:
        try:
            settings = Settings.from_env()
        except ValueError as error:
            return CommandResult(lines=[f"Invalid configuration: {error}"], success=False)
        set_settings(settings)
        self._ensure_tasks()

        try:
            tasks = self._select(command.patterns)
        except Bailed as error:
            return CommandResult(lines=[f"Invalid task selector: {error}"], success=False)

        lines = []
        for task in tasks:
            aliases = ", ".join(task.names[1:])
            state = "enabled" if task.enabled() else "disabled"
            suffix = f" (aliases: {aliases})" if aliases else ""
            lines.append(f"{task.name} [{state}]{suffix}")
        if not lines:
            lines.append("No tasks match.")
        return CommandResult(lines=lines, success=bool(tasks))

    def build(self, command: BuildCommand) -> CommandResult:
        try:
            settings = Settings.from_env(build_dir=command.build_dir)
        except ValueError as error:
            return CommandResult(lines=[f"Invalid configuration: {error}"], success=False)
        settings = _apply_build_options(settings, command)
        set_settings(settings)
        self._ensure_tasks()

        try:
            tasks = self._select(command.patterns)
        except Bailed as error:
            self.manager.interrupt_all()
            return CommandResult(lines=[f"Invalid task selector: {error}"], success=False)

        if not tasks:
            return CommandResult(lines=["No tasks match."], success=False)

        with self._signal_handlers():
            if command.parallel:
                failures = self._run_parallel(tasks)
            else:
                failures = self._run_sequential(tasks)

        lines: list[str] = []
        for task, error in failures:
            lines.append(f"Task {task.name} failed: {error}")
            if isinstance(error, ProcessError) and error.stderr:
                lines.append(error.stderr)

        if self.manager.interrupted():
            lines.append("Run interrupted.")
            return CommandResult(lines=lines, success=False)

        failed = [task for task, _ in failures]
        done = [task.name for task in tasks if task not in failed]
        if done:
            lines.append(f"Tasks completed: {', '.join(done)}")
        return CommandResult(lines=lines, success=not failures)

    def _run_sequential(self, tasks: list[Task]) -> list[tuple[Task, Exception]]:
        # a failing task stops its own pipeline only; bail-outs and signals stop the run
        failures: list[tuple[Task, Exception]] = []
        for task in tasks:
            if self.manager.interrupted():
                break
            try:
                task.running_from_thread(task.name, task.run)
            except Exception as error:  # noqa: BLE001
                logger.error("task %s failed: %s", task.name, error)
                failures.append((task, error))
        return failures

    def _run_parallel(self, tasks: list[Task]) -> list[tuple[Task, Exception]]:
        with ParallelTaskGroup(tasks) as group:
            try:
                group.run()
            except Exception:  # noqa: BLE001
                # every child failure is recorded on the group
                return group.failures
        return []

    def _select(self, patterns: tuple[str, ...]) -> list[Task]:
        available = self.manager.tasks()
        if not patterns:
            return available

        selected: list[Task] = []
        for pattern in patterns:
            for task in available:
                if task in selected:
                    continue
                if task.name_matches(pattern):
                    selected.append(task)
        return selected

    def _ensure_tasks(self) -> None:
        if not self.manager.tasks():
            create_tasks()

    @contextmanager
    def _signal_handlers(self) -> Iterator[None]:
        if not hasattr(signal, "SIGINT"):
            yield
            return

        original_sigint = signal.getsignal(signal.SIGINT)
        original_sigterm = signal.getsignal(signal.SIGTERM)

        def _handler(signum: int, _: object | None) -> None:
            try:
                name = signal.Signals(signum).name
            except ValueError:
                name = str(signum)
            logger.warning("received %s, interrupting all tasks", name)
            self.manager.interrupt_all()

        installed = False
        try:
            signal.signal(signal.SIGINT, _handler)
            signal.signal(signal.SIGTERM, _handler)
            installed = True
        except ValueError:
            # Signal handlers can only be installed in main thread.
            pass
        try:
            yield
        finally:
            if installed:
                signal.signal(signal.SIGINT, original_sigint)
                signal.signal(signal.SIGTERM, original_sigterm)


def _apply_build_options(settings: Settings, command: BuildCommand) -> Settings:
    switches = settings.switches
    switches = replace(
        switches,
        clean=switches.clean if command.clean is None else command.clean,
        fetch=switches.fetch if command.fetch is None else command.fetch,
        build=switches.build if command.build is None else command.build,
        redownload=switches.redownload or command.redownload,
        reextract=switches.reextract or command.reextract,
        reconfigure=switches.reconfigure or command.reconfigure,
        rebuild=switches.rebuild or command.rebuild,
    )
    paths = settings.paths
    if command.patches_dir is not None:
        paths = replace(paths, patches=command.patches_dir)
    task_defaults = settings.task_defaults
    if command.no_pull:
        task_defaults = replace(task_defaults, no_pull=True)
    return replace(settings, switches=switches, paths=paths, task_defaults=task_defaults)
