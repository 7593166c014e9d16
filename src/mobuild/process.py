"""Interruptible subprocess invocation used by tools."""

from __future__ import annotations

import logging
import os
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path

from mobuild.context import ExecutionContext, Reason

POLL_INTERVAL_SECONDS = 0.1
_STDERR_TAIL_LINES = 20


class ProcessError(RuntimeError):
    """External process failed to start or exited with a non-zero code."""

    def __init__(
        self,
        message: str,
        *,
        binary: str,
        exit_code: int | None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.binary = binary
        self.exit_code = exit_code
        self.stderr = stderr


@dataclass(slots=True, frozen=True)
class Argument:
    """One command-line argument; quiet ones are hidden from debug logs."""

    value: str
    quiet: bool = False


class Process:
    """Builder and runner for one external command."""

    def __init__(self) -> None:
        self._binary: str = ""
        self._args: list[Argument] = []
        self._cwd: Path | None = None
        self._env: dict[str, str] = {}
        self._stderr_level = logging.WARNING
        self._lock = threading.RLock()
        self._interrupted = threading.Event()
        self._popen: subprocess.Popen[str] | None = None
        self.exit_code: int | None = None

    def binary(self, path: str | Path) -> Process:
        self._binary = str(path)
        return self

    def arg(self, *values: str | Path, quiet: bool = False) -> Process:
        for value in values:
            self._args.append(Argument(str(value), quiet=quiet))
        return self

    def cwd(self, path: Path) -> Process:
        self._cwd = path
        return self

    def env(self, values: dict[str, str]) -> Process:
        self._env.update(values)
        return self

    def stderr_level(self, level: int) -> Process:
        self._stderr_level = level
        return self

    @property
    def arguments(self) -> list[str]:
        return [argument.value for argument in self._args]

    @property
    def working_directory(self) -> Path | None:
        return self._cwd

    @property
    def interrupted(self) -> bool:
        return self._interrupted.is_set()

    @property
    def running(self) -> bool:
        with self._lock:
            return self._popen is not None

    def command_line(self, *, include_quiet: bool = True) -> str:
        parts = [self._binary]
        parts.extend(a.value for a in self._args if include_quiet or not a.quiet)
        return subprocess.list2cmdline(parts)

    def run(self, cx: ExecutionContext, *, check: bool = True) -> int:
        """Run to completion or until interrupted; return the exit code."""

        if not self._binary:
            raise ProcessError("process has no binary", binary="", exit_code=None)

        cx.debug(Reason.CMD, "%s", self.command_line(include_quiet=False))
        cx.trace(Reason.CMD, "full command: %s", self.command_line())
        if self._cwd is not None:
            cx.trace(Reason.CMD, "working directory: %s", self._cwd)

        env = os.environ.copy()
        env.update(self._env)

        with self._lock:
            if self._interrupted.is_set():
                cx.debug(Reason.CMD, "not starting %s, interrupted", self._binary)
                return -1
            try:
                self._popen = subprocess.Popen(  # noqa: S603
                    [self._binary, *self.arguments],
                    cwd=self._cwd,
                    env=env,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    encoding="utf-8",
                    errors="replace",
                )
            except OSError as error:
                raise ProcessError(
                    f"{self._binary} failed to start: {error}",
                    binary=self._binary,
                    exit_code=None,
                ) from error
            popen = self._popen

        try:
            stdout, stderr = _communicate_until_done(popen, self._interrupted)
        finally:
            _terminate_process(popen)
            self.exit_code = popen.returncode
            with self._lock:
                self._popen = None

        for line in stdout.splitlines():
            cx.trace(Reason.CMD, "%s", line)
        for line in stderr.splitlines():
            cx.log(self._stderr_level, Reason.CMD, "%s", line)

        if self._interrupted.is_set():
            cx.debug(Reason.CMD, "%s was interrupted", self._binary)
            return self.exit_code

        if check and self.exit_code != 0:
            tail = "\n".join(stderr.splitlines()[-_STDERR_TAIL_LINES:])
            raise ProcessError(
                f"{self.command_line(include_quiet=False)} returned {self.exit_code}",
                binary=self._binary,
                exit_code=self.exit_code,
                stderr=tail,
            )
        return self.exit_code

    def interrupt(self) -> None:
        """Kill the running process, or prevent it from starting."""

        with self._lock:
            self._interrupted.set()
            popen = self._popen
        if popen is not None and popen.poll() is None:
            try:
                popen.terminate()
            except OSError:
                return


def _communicate_until_done(
    popen: subprocess.Popen[str],
    interrupted: threading.Event,
) -> tuple[str, str]:
    while True:
        try:
            stdout, stderr = popen.communicate(timeout=POLL_INTERVAL_SECONDS)
        except subprocess.TimeoutExpired:
            if interrupted.is_set():
                _terminate_process(popen)
            continue
        return stdout or "", stderr or ""


def _terminate_process(process: subprocess.Popen[str]) -> None:
    if process.poll() is not None:
        return
    try:
        process.terminate()
    except OSError:
        return
    try:
        process.wait(timeout=2)
    except subprocess.TimeoutExpired:
        try:
            process.kill()
        except OSError:
            return
        process.wait(timeout=2)

