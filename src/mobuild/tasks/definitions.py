"""Concrete tasks fetching third-party sources."""

from __future__ import annotations

from pathlib import Path

from mobuild.config import get_settings
from mobuild.context import Reason
from mobuild.ops import delete_directory
from mobuild.tasks.task import CleanFlags, Task


class GitSourceTask(Task):
    """Checks out ``<org>/<repo>`` at ``branch`` into the build directory."""

    def __init__(  # noqa: PLR0913
        self,
        *names: str,
        org: str,
        repo: str,
        branch: str,
        directory: str,
    ) -> None:
        super().__init__(*names)
        self.org = org
        self.repo = repo
        self.branch = branch
        self.directory = directory

    def source_path(self) -> Path | None:
        return get_settings().paths.build / self.directory

    def do_clean(self, flags: CleanFlags) -> None:
        if flags & (CleanFlags.REDOWNLOAD | CleanFlags.REEXTRACT):
            source = self.source_path()
            if source is not None:
                self.cx.info(Reason.REBUILD, "deleting %s", source)
                delete_directory(self.cx, source, optional=True)

    def do_fetch(self) -> None:
        source = self.source_path()
        if source is None:
            return
        self.run_tool(
            self.make_git()
            .url(self.make_git_url(self.org, self.repo))
            .branch(self.branch)
            .output(source),
        )


class BoostDi(GitSourceTask):
    """Header-only dependency injection library, nothing to build."""

    def __init__(self) -> None:
        super().__init__(
            "boost-di",
            "boostdi",
            "boost_di",
            org="boost-experimental",
            repo="di",
            branch="cpp14",
            directory="di",
        )


def create_tasks() -> list[Task]:
    """Construct the default task set; each task registers itself."""

    return [BoostDi()]
