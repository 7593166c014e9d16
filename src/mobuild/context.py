"""Thread-affine logging contexts and the per-task context registry."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import NoReturn

from mobuild.errors import Bailed

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

logger = logging.getLogger(__name__)


class Reason(str, Enum):
    """What a log line is about, shown as a prefix."""

    GENERIC = "generic"
    REBUILD = "rebuild"
    CMD = "cmd"
    FS = "fs"


class ExecutionContext:
    """Names who is logging: a task or a worker thread acting for it."""

    def __init__(self, name: str, thread_id: int | None = None) -> None:
        self.name = name
        self.thread_id = thread_id

    def __repr__(self) -> str:
        return f"ExecutionContext(name={self.name!r}, thread_id={self.thread_id!r})"

    def log(self, level: int, reason: Reason, message: str, *args: object) -> None:
        if not logger.isEnabledFor(level):
            return
        logger.log(
            level,
            "%-12s [%s] " + message,
            self.name,
            reason.value,
            *args,
            extra={"task_context": self.name, "reason": reason.value},
        )

    def trace(self, reason: Reason, message: str, *args: object) -> None:
        self.log(TRACE, reason, message, *args)

    def debug(self, reason: Reason, message: str, *args: object) -> None:
        self.log(logging.DEBUG, reason, message, *args)

    def info(self, reason: Reason, message: str, *args: object) -> None:
        self.log(logging.INFO, reason, message, *args)

    def warning(self, reason: Reason, message: str, *args: object) -> None:
        self.log(logging.WARNING, reason, message, *args)

    def error(self, reason: Reason, message: str, *args: object) -> None:
        self.log(logging.ERROR, reason, message, *args)

    def bail_out(self, reason: Reason, message: str, *args: object) -> NoReturn:
        """Log an error and abort the whole run."""

        self.error(reason, message, *args)
        raise Bailed(message % args if args else message)


UNKNOWN_CONTEXT = ExecutionContext("?")


@dataclass(slots=True)
class _ThreadRecord:
    thread_id: int
    context: ExecutionContext
    depth: int = 1


class ContextRegistry:
    """One context per thread working on behalf of a task.

    Binding a thread that already has a record keeps the existing name and
    only nests; the record goes away when the outermost binding is released.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: list[_ThreadRecord] = []

    def bind(self, name: str, thread_id: int | None = None) -> ExecutionContext:
        tid = threading.get_ident() if thread_id is None else thread_id
        with self._lock:
            for record in self._records:
                if record.thread_id == tid:
                    record.depth += 1
                    return record.context
            record = _ThreadRecord(thread_id=tid, context=ExecutionContext(name, tid))
            self._records.append(record)
            return record.context

    def unbind(self, thread_id: int | None = None) -> None:
        tid = threading.get_ident() if thread_id is None else thread_id
        with self._lock:
            for index, record in enumerate(self._records):
                if record.thread_id != tid:
                    continue
                record.depth -= 1
                if record.depth <= 0:
                    del self._records[index]
                return

    def current(self, thread_id: int | None = None) -> ExecutionContext:
        tid = threading.get_ident() if thread_id is None else thread_id
        with self._lock:
            for record in self._records:
                if record.thread_id == tid:
                    return record.context
        return UNKNOWN_CONTEXT

    @contextmanager
    def bound(self, name: str) -> Iterator[ExecutionContext]:
        context = self.bind(name)
        try:
            yield context
        finally:
            self.unbind()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
