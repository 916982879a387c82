"""Bump, reinstall, build and publish a single package of the suite."""

from __future__ import annotations

import dataclasses as dc
import logging
import shutil
import sys
import typing as typ

from lockstep.commands.publish_errors import (
    LockfileUnchangedError,
    LockstepError,
    PackageStepError,
)
from lockstep.commands.publish_execution import run_checked, run_quietly
from lockstep.commands.publish_version import prompt_for_otp
from lockstep.repository import (
    PackageModelError,
    apply_version,
    load_manifest_document,
    write_manifest_document,
)

if typ.TYPE_CHECKING:
    from pathlib import Path

    from lockstep.commands.publish_execution import CommandRunner
    from lockstep.commands.publish_version import Prompt
    from lockstep.config import CommandsConfig
    from lockstep.repository import GitRepository, PackageDescriptor

LOGGER = logging.getLogger("lockstep.commands.publish")

PUBLISH_STEPS: typ.Final[tuple[str, ...]] = (
    "bump",
    "install",
    "lockfile",
    "build",
    "publish",
)


@dc.dataclass(frozen=True, slots=True)
class PublishSession:
    """Values fixed for the whole publish run."""

    version: str
    tag: str
    repository_root: Path
    peer_dependency: str
    commands: CommandsConfig


@dc.dataclass(frozen=True, slots=True)
class PackageEnvironment:
    """Collaborators a package publish talks to."""

    git: GitRepository
    runner: CommandRunner
    prompt: Prompt
    stdout: typ.TextIO = dc.field(default_factory=lambda: sys.stdout)
    stderr: typ.TextIO = dc.field(default_factory=lambda: sys.stderr)


def bump_version(
    package: PackageDescriptor,
    session: PublishSession,
    environment: PackageEnvironment,
) -> None:
    """Rewrite the manifest version and the peer dependency on the primary."""
    manifest_path = package.manifest_path(session.repository_root)
    document = load_manifest_document(manifest_path)
    updated = apply_version(
        document, session.version, peer_dependency=session.peer_dependency
    )
    write_manifest_document(manifest_path, updated)
    LOGGER.info("Set %s to version %s", package.manifest, session.version)
    if session.commands.format:
        run_quietly(
            environment.runner,
            (*session.commands.format, package.manifest_name),
            cwd=package.root_path(session.repository_root),
            stderr=environment.stderr,
            context=f"The error above happened while formatting {package.manifest}.",
        )


def reinstall_dependencies(
    package: PackageDescriptor,
    session: PublishSession,
    environment: PackageEnvironment,
) -> None:
    """Reinstall dependencies quietly, surfacing the full log on failure."""
    run_quietly(
        environment.runner,
        session.commands.install,
        cwd=package.root_path(session.repository_root),
        stderr=environment.stderr,
        context=f"The error above happened during the building of {package.directory}.",
    )


def verify_lockfile_updated(
    package: PackageDescriptor, environment: PackageEnvironment
) -> None:
    """Require the lock file to be modified after the reinstall."""
    if package.lockfile not in environment.git.modified_paths():
        raise LockfileUnchangedError(package.lockfile)


def build_package(
    package: PackageDescriptor,
    session: PublishSession,
    environment: PackageEnvironment,
) -> None:
    """Remove previous build output and rebuild the package."""
    output_path = package.build_output_path(session.repository_root)
    shutil.rmtree(output_path, ignore_errors=True)
    run_checked(
        environment.runner,
        session.commands.build,
        cwd=package.root_path(session.repository_root),
    )


def publish_to_registry(
    package: PackageDescriptor,
    session: PublishSession,
    environment: PackageEnvironment,
) -> None:
    """Prompt for a one-time password and publish under the session tag."""
    print(
        f"I'm ready to publish {package.directory} to NPM, under {session.version}!",
        file=environment.stdout,
    )
    print(
        "For this, I'll need the One-Time Password (OTP) token.",
        file=environment.stdout,
    )
    otp = prompt_for_otp(environment.prompt)
    run_checked(
        environment.runner,
        (*session.commands.publish, "--tag", session.tag, "--otp", otp),
        cwd=package.root_path(session.repository_root),
    )


_STEP_FUNCTIONS: typ.Final[
    dict[
        str,
        typ.Callable[[PackageDescriptor, PublishSession, PackageEnvironment], None],
    ]
] = {
    "bump": bump_version,
    "install": reinstall_dependencies,
    "lockfile": lambda package, _session, environment: verify_lockfile_updated(
        package, environment
    ),
    "build": build_package,
    "publish": publish_to_registry,
}


def publish_package(
    package: PackageDescriptor,
    session: PublishSession,
    environment: PackageEnvironment,
) -> None:
    """Run every publish step for ``package``, stopping at the first failure."""
    print(f"==> Building and publishing {package.directory}", file=environment.stdout)
    for step in PUBLISH_STEPS:
        LOGGER.debug("Running %s step for %s", step, package.directory)
        try:
            _STEP_FUNCTIONS[step](package, session, environment)
        except PackageModelError as exc:
            raise PackageStepError(package.directory, step, LockstepError(str(exc))) from exc
        except LockstepError as exc:
            raise PackageStepError(package.directory, step, exc) from exc


__all__ = [
    "PUBLISH_STEPS",
    "PackageEnvironment",
    "PublishSession",
    "build_package",
    "bump_version",
    "publish_package",
    "publish_to_registry",
    "reinstall_dependencies",
    "verify_lockfile_updated",
]
