"""Commit, push and release-page helpers run around package publishing."""

from __future__ import annotations

import logging
import typing as typ
import urllib.parse
import webbrowser

if typ.TYPE_CHECKING:
    from collections import abc as cabc

    from lockstep.repository import GitRepository, PackageDescriptor

LOGGER = logging.getLogger("lockstep.commands.publish")

BrowserOpener = typ.Callable[[str], object]

_CHANGELOG_PLACEHOLDER = "- **TODO: Describe relevant changes for this package**"


def commit_message(version: str) -> str:
    """Return the commit message used for version bumps."""
    return f"Bump to {version}"


def commit_packages(
    git: GitRepository,
    packages: cabc.Sequence[PackageDescriptor],
    version: str,
) -> bool:
    """Commit the manifests and lock files of ``packages`` in one commit.

    Nothing is committed when no file actually changed.
    """
    paths = [path for package in packages for path in (package.manifest, package.lockfile)]
    committed = git.commit_paths(paths, commit_message(version))
    if committed:
        LOGGER.info("Committed %s", commit_message(version))
    else:
        LOGGER.info("Nothing to commit for %s", ", ".join(p.directory for p in packages))
    return committed


def changelog_body(package_names: cabc.Iterable[str]) -> str:
    """Return the release body template with one section per package."""
    return "".join(
        f"## `{name}`\n\n{_CHANGELOG_PLACEHOLDER}\n\n\n" for name in package_names
    )


def release_url(
    repository_url: str,
    *,
    version: str,
    target: str,
    package_names: cabc.Iterable[str],
) -> str:
    """Return the pre-filled release creation URL for ``version``."""
    query = urllib.parse.urlencode(
        {
            "tag": version,
            "target": target,
            "title": version,
            "body": changelog_body(package_names),
        },
        quote_via=urllib.parse.quote,
    )
    return f"{repository_url}/releases/new?{query}"


def open_release_page(
    git: GitRepository,
    repository_url: str | None,
    *,
    version: str,
    package_names: cabc.Sequence[str],
    opener: BrowserOpener = webbrowser.open,
) -> str | None:
    """Open the release page in a browser and return its URL."""
    if repository_url is None:
        LOGGER.info("repository.url is not configured; skipping release page")
        return None
    url = release_url(
        repository_url,
        version=version,
        target=git.sha(),
        package_names=package_names,
    )
    LOGGER.debug("Opening %s", url)
    opener(url)
    return url


def registry_links(
    registry_url: str | None, package_names: cabc.Iterable[str]
) -> tuple[str, ...]:
    """Return registry page links for ``package_names`` using ``registry_url``."""
    if registry_url is None:
        return ()
    return tuple(registry_url.format(name=name) for name in package_names)


__all__ = [
    "BrowserOpener",
    "changelog_body",
    "commit_message",
    "commit_packages",
    "open_release_page",
    "registry_links",
    "release_url",
]
