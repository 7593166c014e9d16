"""Git source synchronization: clone, pull, or clone-or-pull."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from mobuild.config import get_settings
from mobuild.context import TRACE, Reason
from mobuild.errors import ToolConfigError
from mobuild.ops import create_directories, delete_directory
from mobuild.process import Process
from mobuild.tools.base import ProcessTool

GIT_MARKER = ".git"


class GitOp(str, Enum):
    """What the tool does with the output directory."""

    CLONE = "clone"
    PULL = "pull"
    CLONE_OR_PULL = "clone_or_pull"


class GitTool(ProcessTool):
    """Materializes or updates a checkout of ``url`` at ``output``.

    ``CLONE_OR_PULL`` attempts a clone first; the clone step reports the
    checkout as already present when ``output/.git`` exists, in which case the
    existing checkout is pulled instead. A clone never runs over an existing
    checkout.
    """

    def __init__(self, op: GitOp = GitOp.CLONE_OR_PULL) -> None:
        super().__init__("git")
        self.op = op
        self._url = ""
        self._branch = ""
        self._output: Path | None = None
        self._shallow = True
        self._user = ""
        self._email = ""
        self._remote_org = ""
        self._remote_key = ""
        self._remote_no_push_upstream = False
        self._remote_push_default_origin = False
        self._set_remote = False

    def url(self, value: str) -> GitTool:
        self._url = value
        return self

    def branch(self, name: str) -> GitTool:
        self._branch = name
        return self

    def output(self, directory: Path) -> GitTool:
        self._output = directory
        return self

    def shallow(self, enabled: bool) -> GitTool:
        self._shallow = enabled
        return self

    def credentials(self, user: str, email: str) -> GitTool:
        self._user = user
        self._email = email
        return self

    def remote(
        self,
        org: str,
        key: str = "",
        no_push_upstream: bool = False,
        push_default_origin: bool = False,
    ) -> GitTool:
        self._set_remote = True
        self._remote_org = org
        self._remote_key = key
        self._remote_no_push_upstream = no_push_upstream
        self._remote_push_default_origin = push_default_origin
        return self

    def do_run(self) -> None:
        if not self._url or self._output is None:
            self.cx.error(Reason.GENERIC, "git missing parameters")
            raise ToolConfigError("git missing parameters")

        switches = get_settings().switches
        if switches.redownload or switches.reextract:
            self.cx.trace(Reason.REBUILD, "deleting directory controlled by git")
            delete_directory(self.cx, self._output, optional=True)

        if self.op is GitOp.CLONE:
            self.do_clone()
        elif self.op is GitOp.PULL:
            self.do_pull()
        elif self.op is GitOp.CLONE_OR_PULL:
            self.do_clone_or_pull()
        else:
            self.cx.bail_out(Reason.GENERIC, "git unknown op %s", self.op)

    def do_clone_or_pull(self) -> None:
        if not self.do_clone():
            self.do_pull()

    def do_clone(self) -> bool:
        """Clone into the output directory; False if a checkout is already there."""

        output = self._require_output()
        marker = output / GIT_MARKER
        if marker.exists():
            self.cx.trace(Reason.GENERIC, "not cloning, %s exists", marker)
            return False

        create_directories(self.cx, output.parent)
        process = self._git().arg("clone", "--recurse-submodules")
        if self._shallow:
            process.arg("--depth", "1")
        process.arg("--single-branch")
        if self._branch:
            process.arg("--branch", self._branch)
        process.arg("--quiet", quiet=True)
        process.arg("-c", "advice.detachedHead=false", quiet=True)
        process.arg(self._url, output)
        self.execute_and_join(process)

        if self._user or self._email:
            self._set_credentials(output)
        if self._set_remote:
            self._set_origin_and_upstream_remotes(output)
        return True

    def do_pull(self) -> None:
        output = self._require_output()
        process = (
            self._git()
            .arg("pull", "--recurse-submodules")
            .arg("--quiet", quiet=True)
            .arg(self._url)
            .cwd(output)
        )
        if self._branch:
            process.arg(self._branch)
        self.execute_and_join(process)

    def _set_credentials(self, output: Path) -> None:
        self.cx.debug(Reason.GENERIC, "setting up credentials")
        if self._user:
            self._config(output, "user.name", self._user)
        if self._email:
            self._config(output, "user.email", self._email)

    def _set_origin_and_upstream_remotes(self, output: Path) -> None:
        repo = _repo_name(self._url)
        origin = f"git@github.com:{self._remote_org}/{repo}.git"
        self.cx.debug(Reason.GENERIC, "setting up remote origin %s", origin)

        self.execute_and_join(self._git().arg("remote", "rename", "origin", "upstream").cwd(output))
        if self._remote_no_push_upstream:
            self.execute_and_join(
                self._git().arg("remote", "set-url", "--push", "upstream", "nopushurl").cwd(output),
            )
        self.execute_and_join(self._git().arg("remote", "add", "origin", origin).cwd(output))
        if self._remote_key:
            self._config(output, "core.sshCommand", f'ssh -i "{self._remote_key}"')
        if self._remote_push_default_origin:
            self._config(output, "remote.pushdefault", "origin")

    def _config(self, output: Path, key: str, value: str) -> None:
        self.execute_and_join(self._git().arg("config", key, value).cwd(output))

    def _git(self) -> Process:
        return (
            Process()
            .binary(get_settings().tools.git)
            .stderr_level(TRACE)
            .env({"GIT_TERMINAL_PROMPT": "0"})
        )

    def _require_output(self) -> Path:
        if self._output is None:
            raise ToolConfigError("git missing output directory")
        return self._output


def _repo_name(url: str) -> str:
    name = url.rstrip("/").rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    return name.removesuffix(".git")
