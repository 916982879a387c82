"""Real Git helpers for end-to-end tests."""

from __future__ import annotations

import typing as typ

from plumbum import local

if typ.TYPE_CHECKING:  # pragma: no cover
    from pathlib import Path
else:  # pragma: no cover - runtime typing fallback
    Path = typ.Any  # type: ignore[assignment]


class GitCommandError(RuntimeError):
    """Raised when a git subprocess returns a non-zero exit status."""

    def __init__(self, command: tuple[str, ...], exit_code: int, detail: str) -> None:
        """Format a descriptive error message for the failing git command."""
        message = f"{' '.join(('git', *command))} failed with exit code {exit_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.command = command
        self.exit_code = exit_code


def git(repo_path: Path, *args: str) -> str:
    """Run ``git args`` inside ``repo_path`` and return stdout."""
    with local.cwd(str(repo_path)):
        exit_code, stdout, stderr = local["git"].run(args, retcode=None)
    if exit_code != 0:
        raise GitCommandError(tuple(args), exit_code, (stderr or stdout).strip())
    return stdout


def init_repository(repo_path: Path, *, branch: str = "main") -> None:
    """Initialise ``repo_path`` on ``branch`` with a throwaway identity."""
    git(repo_path, "init", "--quiet")
    git(repo_path, "symbolic-ref", "HEAD", f"refs/heads/{branch}")
    git(repo_path, "config", "user.email", "e2e@example.invalid")
    git(repo_path, "config", "user.name", "Lockstep E2E")
    git(repo_path, "config", "commit.gpgsign", "false")


def commit_all(repo_path: Path, message: str) -> None:
    """Stage and commit everything in ``repo_path``."""
    git(repo_path, "add", "-A")
    git(repo_path, "commit", "--quiet", "-m", message)


def log_subjects(repo_path: Path, revision: str = "HEAD") -> list[str]:
    """Return commit subjects reachable from ``revision``, newest first."""
    return git(repo_path, "log", "--format=%s", revision).splitlines()


def changed_files(repo_path: Path, revision: str) -> list[str]:
    """Return the paths touched by ``revision``."""
    output = git(
        repo_path, "show", "--name-only", "--format=", "--no-renames", revision
    )
    return sorted(line for line in output.splitlines() if line)


def rev_parse(repo_path: Path, revision: str) -> str:
    """Return the full hash of ``revision``."""
    return git(repo_path, "rev-parse", "--verify", revision).strip()


def is_clean(repo_path: Path) -> bool:
    """Return ``True`` when git reports no uncommitted changes."""
    return not git(repo_path, "status", "--porcelain").strip()
