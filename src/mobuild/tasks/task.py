"""Task lifecycle: clean, fetch (+ patch), build and install."""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Callable, Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from enum import Enum, Flag, auto
from pathlib import Path
from typing import ClassVar, TypeVar

from mobuild.config import GlobalSwitches, TaskSettings, get_settings
from mobuild.context import ContextRegistry, ExecutionContext, Reason
from mobuild.errors import Bailed, Interrupted
from mobuild.tasks.manager import TaskManager
from mobuild.tools import GitOp, GitTool, Patcher, Tool

logger = logging.getLogger(__name__)

ToolT = TypeVar("ToolT", bound=Tool)
ParallelFunctions = Sequence[tuple[str, Callable[[], None]]]


class CleanFlags(Flag):
    """Which cleanup sub-steps a clean pass performs."""

    NOTHING = 0
    REDOWNLOAD = auto()
    REEXTRACT = auto()
    RECONFIGURE = auto()
    REBUILD = auto()


_CLEAN_FLAG_NAMES: tuple[tuple[CleanFlags, str], ...] = (
    (CleanFlags.REDOWNLOAD, "redownload"),
    (CleanFlags.REEXTRACT, "reextract"),
    (CleanFlags.RECONFIGURE, "reconfigure"),
    (CleanFlags.REBUILD, "rebuild"),
)


def clean_flags_to_string(flags: CleanFlags) -> str:
    return "|".join(name for flag, name in _CLEAN_FLAG_NAMES if flag in flags)


def make_clean_flags(switches: GlobalSwitches | None = None) -> CleanFlags:
    """Combine the clean sub-flags enabled in the configuration."""

    switches = switches or get_settings().switches
    flags = CleanFlags.NOTHING
    if switches.redownload:
        flags |= CleanFlags.REDOWNLOAD
    if switches.reextract:
        flags |= CleanFlags.REEXTRACT
    if switches.reconfigure:
        flags |= CleanFlags.RECONFIGURE
    if switches.rebuild:
        flags |= CleanFlags.REBUILD
    return flags


class TaskState(str, Enum):
    """Where a task is in its run; ``interrupted`` is final."""

    IDLE = "idle"
    CLEANING = "cleaning"
    FETCHING = "fetching"
    BUILDING = "building"
    DONE = "done"
    INTERRUPTED = "interrupted"


class Task:
    """A named unit of work driven through clean, fetch and build phases.

    The first name is canonical, the others are aliases used when matching
    selectors. Every thread doing work for the task has its own
    :class:`ExecutionContext`, found with :attr:`cx`. Tools run through
    :meth:`run_tool` are tracked so :meth:`interrupt` can reach them.
    """

    registered: ClassVar[bool] = True

    def __init__(self, *names: str) -> None:
        if not names:
            raise ValueError("a task needs at least one name")
        self._names: tuple[str, ...] = tuple(names)
        self._interrupted = threading.Event()
        # reentrant, interrupt() may run from a signal handler on this thread
        self._tools_lock = threading.RLock()
        self._tools: list[Tool] = []
        self._contexts = ContextRegistry()
        self._state = TaskState.IDLE

        # tasks log before any worker thread exists
        self._contexts.bind(self.name)

        if self.registered:
            TaskManager.instance().register(self)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({', '.join(map(repr, self._names))})"

    @property
    def name(self) -> str:
        return self._names[0]

    @property
    def names(self) -> tuple[str, ...]:
        return self._names

    @property
    def state(self) -> TaskState:
        return self._state

    @property
    def interrupted(self) -> bool:
        return self._interrupted.is_set()

    @property
    def cx(self) -> ExecutionContext:
        return self._contexts.current()

    @property
    def contexts(self) -> ContextRegistry:
        return self._contexts

    def enabled(self) -> bool:
        return self.task_conf().enabled

    def task_conf(self) -> TaskSettings:
        return get_settings().task(self._names)

    def source_path(self) -> Path | None:
        return None

    def prebuilt(self) -> bool:
        return False

    def do_clean(self, flags: CleanFlags) -> None:
        """Task-specific cleanup."""

    def do_fetch(self) -> None:
        """Task-specific download/checkout."""

    def do_build_and_install(self) -> None:
        """Task-specific build."""

    def run(self) -> None:
        if self.interrupted:
            self._state = TaskState.INTERRUPTED
            raise Interrupted(self.name)

        if not self.enabled():
            self.cx.debug(Reason.GENERIC, "task is disabled")
            return

        self.cx.info(Reason.GENERIC, "running task")
        try:
            self._state = TaskState.CLEANING
            self.clean_task()
            self.check_interrupted()

            self._state = TaskState.FETCHING
            self.fetch()
            self.check_interrupted()

            self._state = TaskState.BUILDING
            self.build_and_install()
            self.check_interrupted()
        except Interrupted:
            self._state = TaskState.INTERRUPTED
            raise

        self._state = TaskState.DONE

    def clean_task(self) -> None:
        if not get_settings().switches.clean:
            return

        if not self.enabled():
            self.cx.debug(Reason.GENERIC, "cleaning (skipping, task disabled)")
            return

        flags = make_clean_flags()
        if flags == CleanFlags.NOTHING:
            return

        self.cx.info(Reason.REBUILD, "cleaning (%s)", clean_flags_to_string(flags))
        self.do_clean(flags)

    def fetch(self) -> None:
        if not get_settings().switches.fetch:
            return

        if not self.enabled():
            self.cx.debug(Reason.GENERIC, "fetching (skipping, task disabled)")
            return

        self.cx.info(Reason.GENERIC, "fetching")
        self.do_fetch()
        self.check_interrupted()

        source = self.source_path()
        if source is not None:
            self.cx.debug(Reason.GENERIC, "patching")
            self.run_tool(Patcher().task(self.name, self.prebuilt()).root(source))

    def build_and_install(self) -> None:
        if not get_settings().switches.build:
            return

        if not self.enabled():
            self.cx.debug(Reason.GENERIC, "build and install (skipping, task disabled)")
            return

        self.cx.info(Reason.GENERIC, "build and install")
        self.do_build_and_install()

    def interrupt(self) -> None:
        with self._tools_lock:
            self._interrupted.set()
            for tool in self._tools:
                tool.interrupt()

    def check_interrupted(self) -> None:
        if self._interrupted.is_set():
            raise Interrupted(self.name)

    def active_tools(self) -> list[Tool]:
        with self._tools_lock:
            return list(self._tools)

    def run_tool(self, tool: ToolT) -> ToolT:
        with self._active_tool(tool):
            self.cx.debug(Reason.GENERIC, "running tool %s", tool.name)
            self.check_interrupted()
            tool.run(self.cx)
            self.check_interrupted()
        return tool

    @contextmanager
    def _active_tool(self, tool: Tool) -> Iterator[None]:
        with self._tools_lock:
            self._tools.append(tool)
        try:
            yield
        finally:
            with self._tools_lock:
                self._tools.remove(tool)

    def running_from_thread(self, thread_name: str, function: Callable[[], None]) -> None:
        """Run ``function`` with a context bound for the calling thread.

        A bail-out interrupts every registered task; an interruption ends the
        thread quietly.
        """

        with self._contexts.bound(thread_name):
            try:
                function()
            except Bailed:
                self.cx.error(Reason.GENERIC, "%s bailed out, interrupting all tasks", self.name)
                TaskManager.instance().interrupt_all()
            except Interrupted:
                return

    def parallel(self, functions: ParallelFunctions, threads: int | None = None) -> None:
        """Run named functions on a bounded pool, each with its own context."""

        max_workers = threads or get_settings().tools.max_threads
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = []
            for thread_name, function in functions:
                self.cx.trace(Reason.GENERIC, "running in parallel: %s", thread_name)
                futures.append(pool.submit(self.running_from_thread, thread_name, function))
        for future in futures:
            future.result()

    def name_matches(self, pattern: str) -> bool:
        if "*" in pattern:
            return self._name_matches_glob(pattern)
        return any(strings_match(name, pattern) for name in self._names)

    def _name_matches_glob(self, pattern: str) -> bool:
        # globs are regexes where '*' becomes '.*'; underscores are dashes
        fixed = pattern.replace("*", ".*").replace("_", "-")
        try:
            regex = re.compile(fixed, re.IGNORECASE)
        except re.error as error:
            logger.error(
                "bad glob %r (%s); globs are regexes where '*' is replaced by '.*'",
                pattern,
                error,
            )
            raise Bailed(f"bad glob {pattern!r}") from error
        return any(regex.fullmatch(name.replace("_", "-")) for name in self._names)

    def make_git(self) -> GitTool:
        """Git tool set up from this task's configuration."""

        conf = self.task_conf()
        # pull unless explicitly disabled
        tool = GitTool(GitOp.CLONE if conf.no_pull else GitOp.CLONE_OR_PULL)
        tool.shallow(conf.git_shallow)
        tool.credentials(conf.git_user, conf.git_email)
        if conf.set_origin_remote:
            tool.remote(
                conf.remote_org,
                conf.remote_key,
                conf.remote_no_push_upstream,
                conf.remote_push_default_origin,
            )
        return tool

    def make_git_url(self, org: str, repo: str) -> str:
        return f"{self.task_conf().git_url_prefix}{org}/{repo}.git"


def strings_match(a: str, b: str) -> bool:
    """Case-insensitive equality where '-' and '_' are interchangeable."""

    if len(a) != len(b):
        return False
    for ca, cb in zip(a, b, strict=True):
        if ca in "-_" and cb in "-_":
            continue
        if ca != cb and ca.casefold() != cb.casefold():
            return False
    return True


class ParallelTaskGroup(Task):
    """Runs its child tasks concurrently, one thread per child."""

    registered: ClassVar[bool] = False

    def __init__(self, tasks: Sequence[Task] = ()) -> None:
        super().__init__("parallel")
        self._children: list[Task] = list(tasks)
        self._threads: list[threading.Thread] = []
        self._failures_lock = threading.Lock()
        self._failures: list[tuple[Task, Exception]] = []

    def __enter__(self) -> ParallelTaskGroup:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.join()

    def enabled(self) -> bool:
        return True

    def add_task(self, task: Task) -> None:
        self._children.append(task)

    def children(self) -> list[Task]:
        return list(self._children)

    @property
    def failures(self) -> list[tuple[Task, Exception]]:
        with self._failures_lock:
            return list(self._failures)

    def run(self) -> None:
        with self._failures_lock:
            self._failures.clear()

        for child in self._children:
            thread = threading.Thread(
                target=self._run_child,
                args=(child,),
                name=child.name,
                daemon=True,
            )
            self._threads.append(thread)
            thread.start()

        self.join()

        failures = self.failures
        if failures:
            _, error = failures[0]
            raise error

    def _run_child(self, child: Task) -> None:
        try:
            child.running_from_thread(child.name, child.run)
        except Exception as error:  # noqa: BLE001
            logger.error("task %s failed: %s", child.name, error)
            with self._failures_lock:
                self._failures.append((child, error))

    def interrupt(self) -> None:
        for child in self._children:
            child.interrupt()

    def join(self) -> None:
        for thread in self._threads:
            thread.join()
        self._threads.clear()
