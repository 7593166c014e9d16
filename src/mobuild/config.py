"""Runtime configuration for phases, paths, tools and per-task options."""

from __future__ import annotations

import os
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field, fields, replace
from pathlib import Path


@dataclass(slots=True)
class GlobalSwitches:
    """Process-wide phase switches and clean sub-flags."""

    clean: bool = False
    fetch: bool = True
    build: bool = True
    redownload: bool = False
    reextract: bool = False
    reconfigure: bool = False
    rebuild: bool = False


@dataclass(slots=True)
class PathSettings:
    """Directories used by tasks and tools."""

    build: Path = Path("build")
    patches: Path = Path("patches")


@dataclass(slots=True)
class ToolSettings:
    """External binaries and worker limits."""

    git: str = "git"
    max_threads: int | None = None


@dataclass(slots=True)
class TaskSettings:
    """Options resolved for one task, keyed by its names."""

    enabled: bool = True
    git_url_prefix: str = "https://github.com/"
    git_user: str = ""
    git_email: str = ""
    git_shallow: bool = True
    no_pull: bool = False
    set_origin_remote: bool = False
    remote_org: str = ""
    remote_key: str = ""
    remote_no_push_upstream: bool = False
    remote_push_default_origin: bool = False


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    switches: GlobalSwitches = field(default_factory=GlobalSwitches)
    paths: PathSettings = field(default_factory=PathSettings)
    tools: ToolSettings = field(default_factory=ToolSettings)
    task_defaults: TaskSettings = field(default_factory=TaskSettings)
    task_overrides: dict[str, dict[str, object]] = field(default_factory=dict)

    @classmethod
    def from_env(cls, build_dir: Path | None = None) -> Settings:
        """Load settings from environment with defaults for local builds."""

        overrides: dict[str, dict[str, object]] = {}
        for name in _env_list("MOBUILD_DISABLED_TASKS"):
            overrides.setdefault(name, {})["enabled"] = False

        return cls(
            switches=GlobalSwitches(
                clean=_env_bool("MOBUILD_CLEAN", default=False),
                fetch=_env_bool("MOBUILD_FETCH", default=True),
                build=_env_bool("MOBUILD_BUILD", default=True),
                redownload=_env_bool("MOBUILD_REDOWNLOAD", default=False),
                reextract=_env_bool("MOBUILD_REEXTRACT", default=False),
                reconfigure=_env_bool("MOBUILD_RECONFIGURE", default=False),
                rebuild=_env_bool("MOBUILD_REBUILD", default=False),
            ),
            paths=PathSettings(
                build=build_dir or Path(os.getenv("MOBUILD_BUILD_DIR", "build")),
                patches=Path(os.getenv("MOBUILD_PATCHES_DIR", "patches")),
            ),
            tools=ToolSettings(
                git=os.getenv("MOBUILD_GIT_BINARY", "git"),
                max_threads=_env_optional_int("MOBUILD_MAX_THREADS"),
            ),
            task_defaults=TaskSettings(
                git_url_prefix=os.getenv("MOBUILD_GIT_URL_PREFIX", "https://github.com/"),
                git_user=os.getenv("MOBUILD_GIT_USER", ""),
                git_email=os.getenv("MOBUILD_GIT_EMAIL", ""),
                git_shallow=_env_bool("MOBUILD_GIT_SHALLOW", default=True),
                no_pull=_env_bool("MOBUILD_NO_PULL", default=False),
                set_origin_remote=_env_bool("MOBUILD_SET_ORIGIN_REMOTE", default=False),
                remote_org=os.getenv("MOBUILD_REMOTE_ORG", ""),
                remote_key=os.getenv("MOBUILD_REMOTE_KEY", ""),
                remote_no_push_upstream=_env_bool(
                    "MOBUILD_REMOTE_NO_PUSH_UPSTREAM",
                    default=False,
                ),
                remote_push_default_origin=_env_bool(
                    "MOBUILD_REMOTE_PUSH_DEFAULT_ORIGIN",
                    default=False,
                ),
            ),
            task_overrides=overrides,
        )

    def task(self, names: Iterable[str]) -> TaskSettings:
        """Resolve options for a task; overrides match any of its names."""

        keys = {normalize_task_name(name) for name in names}
        resolved = self.task_defaults
        for key, values in self.task_overrides.items():
            if normalize_task_name(key) not in keys:
                continue
            unknown = set(values) - {f.name for f in fields(TaskSettings)}
            if unknown:
                raise ValueError(f"Unknown task option(s) for {key!r}: {sorted(unknown)}")
            resolved = replace(resolved, **values)
        return resolved


def normalize_task_name(name: str) -> str:
    """Dashes and underscores are equivalent, case is ignored."""

    return name.strip().lower().replace("_", "-")


_current_lock = threading.Lock()
_current: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them from env on first use."""

    global _current  # noqa: PLW0603
    with _current_lock:
        if _current is None:
            _current = Settings.from_env()
        return _current


def set_settings(settings: Settings | None) -> None:
    """Replace the process-wide settings; None reloads from env on next use."""

    global _current  # noqa: PLW0603
    with _current_lock:
        _current = settings


def _env_list(name: str) -> tuple[str, ...]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return ()
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _env_optional_int(name: str) -> int | None:
    value = os.getenv(name, "").strip()
    if not value:
        return None
    try:
        parsed = int(value)
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error
    if parsed <= 0:
        raise ValueError(f"{name} must be > 0.")
    return parsed


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
