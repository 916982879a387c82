"""Exception hierarchy for publish failures.

Every error carries the process exit status that :func:`lockstep.cli.main`
reports when it escapes the publish run.
"""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from collections import abc as cabc

EXIT_USAGE = 2
EXIT_DIRTY_TREE = 3
EXIT_COMMAND_FAILED = 4
EXIT_LOCKFILE_UNCHANGED = 5


class LockstepError(RuntimeError):
    """Base class for fatal publish errors."""

    exit_code: int = EXIT_USAGE


class MissingToolError(LockstepError):
    """Raised when a required external tool is not on ``PATH``."""

    def __init__(self, tool: str, instructions: str) -> None:
        """Record the missing ``tool`` alongside installation hints."""
        self.tool = tool
        super().__init__(instructions)


class PreflightError(LockstepError):
    """Raised when the repository is not in a publishable state."""


class DirtyWorkingTreeError(PreflightError):
    """Raised when tracked files carry uncommitted changes."""

    exit_code = EXIT_DIRTY_TREE


class InvalidVersionError(LockstepError):
    """Raised when an explicitly supplied version is malformed."""

    def __init__(self, version: str) -> None:
        """Describe the rejected ``version``."""
        self.version = version
        super().__init__(f"Invalid version: {version}")


class CommandFailedError(LockstepError):
    """Raised when an install, build, format or publish command fails."""

    exit_code = EXIT_COMMAND_FAILED

    def __init__(
        self,
        rendered: str,
        exit_code: int,
        *,
        output: str = "",
        log_path: str | None = None,
    ) -> None:
        """Summarise the failing ``rendered`` command and its captured output."""
        self.command_exit_code = exit_code
        self.output = output
        self.log_path = log_path
        message = f"Command failed with exit code {exit_code}: {rendered}"
        if log_path is not None:
            message = f"{message} (log: {log_path})"
        super().__init__(message)


class LockfileUnchangedError(LockstepError):
    """Raised when reinstalling dependencies left the lock file untouched."""

    exit_code = EXIT_LOCKFILE_UNCHANGED

    def __init__(self, lockfile: str) -> None:
        """Describe the lock file that should have changed."""
        self.lockfile = lockfile
        super().__init__(
            f"Hmm. {lockfile} wasn't affected by the version bump. "
            "This is fishy. Please manually inspect!"
        )


class PackageStepError(LockstepError):
    """Raised when a step fails for a specific package."""

    def __init__(self, package: str, step: str, cause: LockstepError) -> None:
        """Wrap ``cause`` with the package and step that produced it."""
        self.package = package
        self.step = step
        self.cause = cause
        self.exit_code = cause.exit_code
        super().__init__(f"{package}: {step} step failed: {cause}")


def format_modified_paths(paths: cabc.Iterable[str]) -> str:
    """Return ``paths`` rendered as an indented bullet list."""
    return "\n".join(f"  - {path}" for path in paths)


__all__ = [
    "EXIT_COMMAND_FAILED",
    "EXIT_DIRTY_TREE",
    "EXIT_LOCKFILE_UNCHANGED",
    "EXIT_USAGE",
    "CommandFailedError",
    "DirtyWorkingTreeError",
    "InvalidVersionError",
    "LockfileUnchangedError",
    "LockstepError",
    "MissingToolError",
    "PackageStepError",
    "PreflightError",
    "format_modified_paths",
]
