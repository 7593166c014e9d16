"""Interruptible units of external work run by tasks."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod

from mobuild.context import UNKNOWN_CONTEXT, ExecutionContext, Reason
from mobuild.process import Process


class Tool(ABC):
    """One external operation; ``interrupt()`` may be called from any thread."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._interrupted = threading.Event()
        self.cx: ExecutionContext = UNKNOWN_CONTEXT

    @property
    def name(self) -> str:
        return self._name

    @property
    def interrupted(self) -> bool:
        return self._interrupted.is_set()

    def run(self, cx: ExecutionContext) -> None:
        self.cx = cx
        self.do_run()

    def interrupt(self) -> None:
        self._interrupted.set()
        self.do_interrupt()

    @abstractmethod
    def do_run(self) -> None:
        """Perform the operation, blocking until it is done."""

    def do_interrupt(self) -> None:
        """Cancel whatever is running; called after the flag is set."""


class ProcessTool(Tool):
    """Tool that runs one external process at a time."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self._lock = threading.RLock()
        self._process: Process | None = None

    def execute_and_join(self, process: Process, *, check: bool = True) -> int:
        with self._lock:
            if self.interrupted:
                self.cx.debug(Reason.CMD, "%s: not starting process, interrupted", self.name)
                return -1
            self._process = process
        try:
            return process.run(self.cx, check=check)
        finally:
            with self._lock:
                self._process = None

    def do_interrupt(self) -> None:
        with self._lock:
            process = self._process
        if process is not None:
            self.cx.trace(Reason.CMD, "%s: interrupting process", self.name)
            process.interrupt()
