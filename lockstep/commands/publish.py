"""Publish every package of the suite in lockstep."""

from __future__ import annotations

import dataclasses as dc
import getpass
import logging
import sys
import typing as typ
import webbrowser
from pathlib import Path

from lockstep import config as config_module
from lockstep.commands import publish_finalize
from lockstep.commands.publish_errors import LockstepError, PreflightError
from lockstep.commands.publish_execution import CommandRunner, invoke
from lockstep.commands.publish_package import (
    PackageEnvironment,
    PublishSession,
    publish_package,
)
from lockstep.commands.publish_preflight import (
    ToolLookup,
    check_clean_install,
    run_preflight_checks,
    tool_on_path,
)
from lockstep.commands.publish_version import (
    Prompt,
    resolve_version,
    validate_version_argument,
)
from lockstep.repository import (
    GitRepository,
    PackageDescriptor,
    PackageModelError,
    describe_packages,
    load_manifest,
)
from lockstep.utils import normalise_repository_root

if typ.TYPE_CHECKING:
    from lockstep.config import LockstepConfig

LOGGER = logging.getLogger("lockstep.commands.publish")

DEFAULT_TAG = "latest"


@dc.dataclass(frozen=True, slots=True)
class PublishOptions:
    """Runtime configuration for a publish run.

    Parameters
    ----------
    version:
        Version to publish. When ``None`` the operator is prompted.
    tag:
        Distribution tag. Supplying one skips the trunk branch check; when
        ``None`` packages are published under :data:`DEFAULT_TAG`.
    cwd:
        Directory the publish was started from; must be the repository root.
    configuration:
        Optional pre-loaded configuration to use instead of ``lockstep.toml``.
    command_runner:
        Callable used to execute external commands.
    prompt:
        Callable used to read the version from the operator.
    otp_prompt:
        Callable used to read one-time passwords without echoing them.
    tool_lookup:
        Callable deciding whether a required tool is on ``PATH``.
    open_browser:
        Callable that opens the release page URL.

    """

    version: str | None = None
    tag: str | None = None
    cwd: Path | None = None
    configuration: LockstepConfig | None = None
    command_runner: CommandRunner = invoke
    prompt: Prompt = input
    otp_prompt: Prompt = getpass.getpass
    tool_lookup: ToolLookup = tool_on_path
    open_browser: publish_finalize.BrowserOpener = webbrowser.open
    stdout: typ.TextIO | None = None
    stderr: typ.TextIO | None = None


@dc.dataclass(frozen=True, slots=True)
class PublishResult:
    """Outcome of a completed publish run."""

    version: str
    tag: str
    packages: tuple[str, ...]
    release_url: str | None


def _ensure_configuration(
    configuration: LockstepConfig | None, repository_root: Path
) -> LockstepConfig:
    """Return the active configuration, loading it from disk when required."""
    if configuration is not None:
        return configuration
    try:
        return config_module.current_configuration()
    except config_module.ConfigurationNotLoadedError:
        return config_module.load_configuration(repository_root)


def _describe(configuration: LockstepConfig) -> tuple[PackageDescriptor, ...]:
    try:
        return describe_packages(configuration.packages)
    except PackageModelError as exc:
        raise PreflightError(str(exc)) from exc


def _manifest_name(package: PackageDescriptor, repository_root: Path) -> str:
    try:
        return load_manifest(package.manifest_path(repository_root)).name
    except PackageModelError as exc:
        raise PreflightError(str(exc)) from exc


def _current_version(package: PackageDescriptor, repository_root: Path) -> str:
    try:
        return load_manifest(package.manifest_path(repository_root)).version
    except PackageModelError as exc:
        raise PreflightError(str(exc)) from exc


def run(options: PublishOptions | None = None) -> PublishResult:
    """Check the repository, then bump, build, publish, commit and push."""
    active = PublishOptions() if options is None else options
    stdout = active.stdout or sys.stdout
    stderr = active.stderr or sys.stderr
    cwd = normalise_repository_root(active.cwd)
    tag = active.tag or None

    validate_version_argument(active.version)
    configuration = _ensure_configuration(active.configuration, cwd)
    git = GitRepository(root=cwd, runner=active.command_runner)

    run_preflight_checks(
        git, configuration, tag=tag, cwd=cwd, lookup=active.tool_lookup
    )
    packages = _describe(configuration)
    if configuration.preflight.verify_clean_install:
        check_clean_install(
            git,
            packages,
            install_command=configuration.commands.install,
            runner=active.command_runner,
            stdout=stdout,
            stderr=stderr,
        )

    primary, secondary = packages[0], packages[1:]
    version = resolve_version(
        active.version,
        lambda: _current_version(primary, cwd),
        prompt=active.prompt,
        stdout=stdout,
    )
    package_names = tuple(_manifest_name(package, cwd) for package in packages)
    session = PublishSession(
        version=version,
        tag=tag or DEFAULT_TAG,
        repository_root=cwd,
        peer_dependency=configuration.packages.peer_dependency or package_names[0],
        commands=configuration.commands,
    )
    environment = PackageEnvironment(
        git=git,
        runner=active.command_runner,
        prompt=active.otp_prompt,
        stdout=stdout,
        stderr=stderr,
    )

    publish_package(primary, session, environment)
    publish_finalize.commit_packages(git, (primary,), version)

    for package in secondary:
        publish_package(package, session, environment)
    if secondary:
        publish_finalize.commit_packages(git, secondary, version)

    print("==> Pushing changes to GitHub", file=stdout)
    git.push_current(configuration.repository.remote)
    url = publish_finalize.open_release_page(
        git,
        configuration.repository.url,
        version=version,
        package_names=package_names,
        opener=active.open_browser,
    )
    LOGGER.info(
        "Published %d package(s) at %s under tag %s",
        len(packages),
        version,
        session.tag,
    )
    _print_summary(
        stdout,
        publish_finalize.registry_links(
            configuration.packages.registry_url, package_names
        ),
    )
    return PublishResult(
        version=version,
        tag=session.tag,
        packages=tuple(package.directory for package in packages),
        release_url=url,
    )


def _print_summary(stdout: typ.TextIO, links: tuple[str, ...]) -> None:
    print(
        "Done! Please finish it off by writing a nice changelog entry on GitHub.",
        file=stdout,
    )
    if not links:
        return
    print("", file=stdout)
    print("You can double-check the published releases here:", file=stdout)
    for link in links:
        print(f"  - {link}", file=stdout)
    print("", file=stdout)


__all__ = [
    "DEFAULT_TAG",
    "LockstepError",
    "PublishOptions",
    "PublishResult",
    "run",
]
