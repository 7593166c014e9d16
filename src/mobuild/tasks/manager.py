"""Process-wide registry of constructed tasks."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from mobuild.tasks.task import Task

logger = logging.getLogger(__name__)


class TaskManager:
    """Every task registers itself here so an interrupt can reach all of them."""

    _instance: ClassVar[TaskManager | None] = None
    _instance_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tasks: list[Task] = []
        self._interrupted = threading.Event()

    @classmethod
    def instance(cls) -> TaskManager:
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    def register(self, task: Task) -> None:
        with self._lock:
            self._tasks.append(task)

    def tasks(self) -> list[Task]:
        with self._lock:
            return list(self._tasks)

    def find(self, pattern: str) -> list[Task]:
        """Tasks whose names match ``pattern``; a bad glob raises ``Bailed``."""

        return [task for task in self.tasks() if task.name_matches(pattern)]

    def interrupt_all(self) -> None:
        self._interrupted.set()
        tasks = self.tasks()
        logger.info("interrupting %d task(s)", len(tasks))
        for task in tasks:
            task.interrupt()

    def interrupted(self) -> bool:
        return self._interrupted.is_set()

    def clear(self) -> None:
        """Forget all tasks and reset the interrupted state."""

        with self._lock:
            self._tasks.clear()
            self._interrupted.clear()
