"""Pytest fixtures for end-to-end publish tests against real git."""

from __future__ import annotations

import dataclasses as dc
import shutil
import typing as typ

import pytest

from tests.conftest import PRIMARY_NAME, SECONDARY_PACKAGES, make_package
from tests.e2e.helpers import git_helpers

if typ.TYPE_CHECKING:  # pragma: no cover
    from pathlib import Path
else:  # pragma: no cover - runtime typing fallback
    Path = typ.Any  # type: ignore[assignment]



@dc.dataclass(frozen=True, slots=True)
class GitSuite:
    """A package suite checked out from a bare ``origin`` remote."""

    root: Path
    remote: Path


@pytest.fixture
def git_suite(
    tmp_path: Path,
    write_config: typ.Callable[[Path, dict[str, typ.Any]], Path],
) -> GitSuite:
    """Create a committed three-package suite tracking a bare remote."""
    if shutil.which("git") is None:
        pytest.skip("git not installed")
    remote = tmp_path / "remote.git"
    remote.mkdir()
    git_helpers.git(remote, "init", "--quiet", "--bare")
    root = tmp_path / "suite"
    root.mkdir()
    git_helpers.init_repository(root)
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
            },
        },
    )
    (root / ".gitignore").write_text("node_modules/\nlib/\n", encoding="utf-8")
    git_helpers.commit_all(root, "Initial commit")
    git_helpers.git(root, "remote", "add", "origin", str(remote))
    git_helpers.git(root, "push", "--quiet", "-u", "origin", "main")
    return GitSuite(root=root.resolve(), remote=remote)
