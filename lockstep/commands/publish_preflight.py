"""Pre-flight checks that must pass before anything is mutated."""

from __future__ import annotations

import logging
import shutil
import typing as typ

from plumbum import local
from plumbum.commands.processes import CommandNotFound

from lockstep.commands.publish_errors import (
    DirtyWorkingTreeError,
    MissingToolError,
    PreflightError,
    format_modified_paths,
)
from lockstep.commands.publish_execution import run_quietly

if typ.TYPE_CHECKING:
    from collections import abc as cabc
    from pathlib import Path

    from lockstep.commands.publish_execution import CommandRunner
    from lockstep.config import LockstepConfig
    from lockstep.repository import GitRepository, PackageDescriptor

LOGGER = logging.getLogger("lockstep.commands.publish")

ToolLookup = typ.Callable[[str], bool]

_INSTALL_HINTS: typ.Final[dict[str, tuple[str, ...]]] = {
    "git": (
        "git is not installed.",
        "",
        "You can find it at:",
        "  https://git-scm.com/downloads",
    ),
    "npm": (
        "npm is not installed. It ships with Node.js.",
        "",
        "You can find it at:",
        "  https://nodejs.org/",
    ),
    "prettier": (
        "prettier is not installed. It is used to reformat package manifests",
        "after their version has been bumped.",
        "",
        "Please run:",
        "  npm install --global prettier",
    ),
}


def tool_on_path(name: str) -> bool:
    """Return ``True`` when ``name`` resolves to an executable on ``PATH``."""
    try:
        local.which(name)
    except CommandNotFound:
        return False
    return True


def missing_tool_instructions(tool: str) -> str:
    """Return the operator-facing installation hints for ``tool``."""
    lines = _INSTALL_HINTS.get(
        tool,
        (f"{tool} is not installed.", "", f"Please install {tool} and add it to PATH."),
    )
    return "\n".join(("Oops!", *lines))


def check_required_tools(
    tools: cabc.Iterable[str], *, lookup: ToolLookup = tool_on_path
) -> None:
    """Abort when any of ``tools`` cannot be found."""
    for tool in tools:
        if not lookup(tool):
            raise MissingToolError(tool, missing_tool_instructions(tool))


def check_current_branch(
    git: GitRepository, *, tag: str | None, trunk_branch: str
) -> None:
    """Require ``trunk_branch`` unless an explicit distribution tag was given."""
    if tag is not None:
        LOGGER.debug("Tag %s supplied; skipping branch check", tag)
        return
    branch = git.current_branch()
    if branch != trunk_branch:
        message = (
            "To publish a package without a tag, you must be on "
            f'"{trunk_branch}" branch (currently on "{branch}").'
        )
        raise PreflightError(message)


def check_up_to_date_with_upstream(git: GitRepository) -> None:
    """Fetch and require the local commit to match its upstream."""
    git.fetch()
    upstream = git.upstream_sha()
    if upstream is None or git.sha() != upstream:
        message = (
            "Not up to date with upstream. "
            "Please pull/push latest changes before publishing."
        )
        raise PreflightError(message)


def check_working_directory(git: GitRepository, cwd: Path) -> None:
    """Require ``cwd`` to be the repository's top-level directory."""
    if cwd.resolve() != git.toplevel():
        message = "This script must be run from the project's root directory."
        raise PreflightError(message)


def check_no_local_changes(git: GitRepository) -> None:
    """Require a working tree without uncommitted changes to tracked files."""
    modified = git.modified_paths()
    if modified:
        message = (
            "There are local changes. Please commit those before publishing.\n"
            f"{format_modified_paths(modified)}"
        )
        raise DirtyWorkingTreeError(message)


def check_clean_install(
    git: GitRepository,
    packages: cabc.Sequence[PackageDescriptor],
    *,
    install_command: tuple[str, ...],
    runner: CommandRunner,
    stdout: typ.TextIO,
    stderr: typ.TextIO,
) -> None:
    """Reinstall every package from scratch and require the tree to stay clean."""
    for package in packages:
        print(
            f"Rebuilding node_modules inside {package.directory} "
            "(this may take a while)...",
            file=stdout,
        )
        package_root = package.root_path(git.root)
        shutil.rmtree(package_root / "node_modules", ignore_errors=True)
        run_quietly(
            runner,
            install_command,
            cwd=package_root,
            stderr=stderr,
            context=(
                "The error above happened while rebuilding node_modules inside "
                f"{package.directory}."
            ),
        )
        modified = git.modified_paths()
        if modified:
            message = (
                "I just removed node_modules and reinstalled all package "
                f"dependencies inside {package.directory}, and found unexpected "
                "changes in the following files:\n"
                f"{format_modified_paths(modified)}\n"
                "Please fix those issues first."
            )
            raise PreflightError(message)


def run_preflight_checks(
    git: GitRepository,
    configuration: LockstepConfig,
    *,
    tag: str | None,
    cwd: Path,
    lookup: ToolLookup = tool_on_path,
) -> None:
    """Execute the repository-state checks in their fixed order."""
    check_required_tools(configuration.preflight.required_tools, lookup=lookup)
    check_current_branch(
        git, tag=tag, trunk_branch=configuration.repository.trunk_branch
    )
    check_up_to_date_with_upstream(git)
    check_working_directory(git, cwd)
    check_no_local_changes(git)


__all__ = [
    "ToolLookup",
    "check_clean_install",
    "check_current_branch",
    "check_no_local_changes",
    "check_required_tools",
    "check_up_to_date_with_upstream",
    "check_working_directory",
    "missing_tool_instructions",
    "run_preflight_checks",
    "tool_on_path",
]
