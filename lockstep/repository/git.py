"""Git queries and mutations used while publishing."""

from __future__ import annotations

import dataclasses as dc
import typing as typ
from pathlib import Path

from lockstep.commands.publish_errors import PreflightError
from lockstep.commands.publish_execution import run_checked

if typ.TYPE_CHECKING:
    from collections import abc as cabc

    from lockstep.commands.publish_execution import CommandRunner


class GitError(PreflightError):
    """Raised when a git command exits with a failure status."""


@dc.dataclass(frozen=True, slots=True)
class GitRepository:
    """Run git commands against the repository rooted at ``root``."""

    root: Path
    runner: CommandRunner

    def _run(self, *args: str) -> tuple[int, str, str]:
        return self.runner(("git", *args), cwd=self.root, echo=False)

    def _output(self, *args: str, strip: bool = True) -> str:
        exit_code, stdout, stderr = self._run(*args)
        if exit_code != 0:
            rendered = " ".join(("git", *args))
            message = f"{rendered} failed with exit code {exit_code}"
            if detail := (stderr or stdout).strip():
                message = f"{message}: {detail}"
            raise GitError(message)
        return stdout.strip() if strip else stdout

    def toplevel(self) -> Path:
        """Return the repository's top-level directory."""
        return Path(self._output("rev-parse", "--show-toplevel")).resolve()

    def current_branch(self) -> str:
        """Return the checked-out branch name."""
        return self._output("rev-parse", "--abbrev-ref", "HEAD")

    def fetch(self) -> None:
        """Fetch the latest state of every remote."""
        self._output("fetch")

    def sha(self, revision: str = "HEAD") -> str:
        """Return the full commit hash for ``revision``."""
        return self._output("rev-parse", "--verify", revision)

    def upstream_sha(self) -> str | None:
        """Return the upstream tracking commit, or ``None`` without an upstream."""
        exit_code, stdout, _stderr = self._run("rev-parse", "--verify", "@{upstream}")
        if exit_code != 0:
            return None
        return stdout.strip()

    def modified_paths(self) -> tuple[str, ...]:
        """Return tracked paths with staged or unstaged modifications."""
        status = self._output(
            "status", "--porcelain", "--untracked-files=no", strip=False
        )
        return tuple(_parse_porcelain_path(line) for line in status.splitlines() if line)

    def is_dirty(self) -> bool:
        """Return ``True`` when tracked files carry uncommitted changes."""
        return bool(self.modified_paths())

    def has_staged_changes(self) -> bool:
        """Return ``True`` when the index differs from ``HEAD``."""
        exit_code, stdout, stderr = self._run("diff", "--cached", "--quiet")
        if exit_code in {0, 1}:
            return exit_code == 1
        detail = (stderr or stdout).strip()
        message = f"git diff --cached failed with exit code {exit_code}: {detail}"
        raise GitError(message)

    def commit_paths(self, paths: cabc.Sequence[str], message: str) -> bool:
        """Commit exactly ``paths`` with ``message``; return whether a commit was made."""
        self._output("reset", "--quiet", "HEAD")
        self._output("add", "--", *paths)
        if not self.has_staged_changes():
            return False
        self._output("commit", "--quiet", "-m", message)
        return True

    def push_current(self, remote: str) -> None:
        """Push the current branch to ``remote``, streaming git's progress."""
        run_checked(self.runner, ("git", "push", remote, "HEAD"), cwd=self.root)


def _parse_porcelain_path(line: str) -> str:
    """Return the (destination) path recorded on a porcelain status line."""
    path = line[3:]
    _source, arrow, destination = path.partition(" -> ")
    resolved = destination if arrow else path
    return resolved.strip('"')


__all__ = ["GitError", "GitRepository"]
