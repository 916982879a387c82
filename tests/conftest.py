"""Pytest configuration for the lockstep test-suite."""

from __future__ import annotations

import dataclasses as dc
import io
import logging
import typing as typ
from contextlib import contextmanager
from pathlib import Path

import msgspec
import pytest
import tomlkit

from lockstep import config as config_module
from lockstep.commands import publish
from tests.helpers.fakes import (
    FakeGit,
    FakeRunner,
    RecordingBrowser,
    ScriptedPrompt,
    touch_lockfile,
)

PRIMARY_NAME = "@acme/client"
SECONDARY_PACKAGES: typ.Final[tuple[tuple[str, str], ...]] = (
    ("packages/acme-react", "@acme/react"),
    ("packages/acme-redux", "@acme/redux"),
)


@pytest.fixture
def repo_root() -> Path:
    """Return the repository root directory."""
    return Path(__file__).resolve().parent.parent


@contextmanager
def preserve_root_logger() -> typ.Iterator[logging.Logger]:
    """Capture and restore the root logger configuration around a test."""
    root_logger = logging.getLogger()
    prior_handlers = list(root_logger.handlers)
    prior_level = root_logger.level
    try:
        yield root_logger
    finally:
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
        for handler in prior_handlers:
            root_logger.addHandler(handler)
        root_logger.setLevel(prior_level)


def write_json(path: Path, document: dict[str, typ.Any]) -> None:
    """Write ``document`` to ``path`` as indented JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(msgspec.json.format(msgspec.json.encode(document)) + b"\n")


def read_json(path: Path) -> dict[str, typ.Any]:
    """Return the JSON object stored at ``path``."""
    return msgspec.json.decode(path.read_bytes())


def make_package(
    root: Path,
    directory: str,
    name: str,
    *,
    version: str = "0.9.0",
    peer: str | None = None,
) -> Path:
    """Materialise a package with a manifest and lock file below ``root``."""
    package_root = root / directory
    manifest: dict[str, typ.Any] = {
        "name": name,
        "version": version,
        "scripts": {"build": "tsc"},
    }
    if peer is not None:
        manifest["peerDependencies"] = {peer: version}
    write_json(package_root / "package.json", manifest)
    write_json(
        package_root / "package-lock.json",
        {"name": name, "version": version, "lockfileVersion": 3},
    )
    return package_root


@pytest.fixture
def write_config() -> typ.Callable[[Path, dict[str, typ.Any]], Path]:
    """Return a helper that writes ``lockstep.toml`` using tomlkit."""

    def _write(root: Path, tables: dict[str, typ.Any]) -> Path:
        document = tomlkit.document()
        for key, table in tables.items():
            document[key] = table
        path = root / config_module.CONFIG_FILENAME
        path.write_text(tomlkit.dumps(document), encoding="utf-8")
        return path

    return _write


@dc.dataclass
class Suite:
    """A temporary package suite wired to fake git and npm collaborators."""

    root: Path
    git: FakeGit
    runner: FakeRunner
    browser: RecordingBrowser
    stdout: io.StringIO = dc.field(default_factory=io.StringIO)
    stderr: io.StringIO = dc.field(default_factory=io.StringIO)

    def configuration(self) -> config_module.LockstepConfig:
        """Load ``lockstep.toml`` from the suite root."""
        return config_module.load_configuration(self.root)

    def options(
        self, answers: typ.Iterable[str] = (), **overrides: typ.Any
    ) -> publish.PublishOptions:
        """Return publish options bound to the fakes.

        Version and one-time password prompts share one scripted answer list.
        """
        prompt = ScriptedPrompt(answers)
        values: dict[str, typ.Any] = {
            "cwd": self.root,
            "configuration": self.configuration(),
            "command_runner": self.runner,
            "prompt": prompt,
            "otp_prompt": prompt,
            "tool_lookup": lambda _name: True,
            "open_browser": self.browser,
            "stdout": self.stdout,
            "stderr": self.stderr,
        }
        values.update(overrides)
        return publish.PublishOptions(**values)

    def manifest(self, directory: str) -> dict[str, typ.Any]:
        """Return the decoded manifest for ``directory``."""
        return read_json(self.root / directory / "package.json")


@pytest.fixture
def suite(
    tmp_path: Path,
    write_config: typ.Callable[[Path, dict[str, typ.Any]], Path],
) -> Suite:
    """Build a three-package suite on disk with fake collaborators."""
    root = tmp_path / "suite"
    make_package(root, "packages/acme-client", PRIMARY_NAME)
    for directory, name in SECONDARY_PACKAGES:
        make_package(root, directory, name, peer=PRIMARY_NAME)
    write_config(
        root,
        {
            "repository": {"url": "https://github.com/acme/suite"},
            "packages": {
                "primary": "packages/acme-client",
                "secondary": [directory for directory, _name in SECONDARY_PACKAGES],
                "registry_url": "https://www.npmjs.com/package/{name}",
            },
        },
    )
    git = FakeGit(root=root.resolve())
    runner = FakeRunner(git=git, handlers={"npm install": touch_lockfile()})
    return Suite(root=root.resolve(), git=git, runner=runner, browser=RecordingBrowser())
