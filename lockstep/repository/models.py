"""Package descriptors and manifest handling for :mod:`lockstep`."""

from __future__ import annotations

import typing as typ
from pathlib import Path

import msgspec

if typ.TYPE_CHECKING:
    from lockstep.config import PackagesConfig

_MANIFEST_INDENT = 2


class PackageModelError(RuntimeError):
    """Raised when a package manifest cannot be read or written."""


class PackageManifest(msgspec.Struct, frozen=True, kw_only=True, rename="camel"):
    """Typed view over the fields of ``package.json`` that publishing needs."""

    name: str
    version: str
    peer_dependencies: dict[str, str] = msgspec.field(default_factory=dict)


class PackageDescriptor(msgspec.Struct, frozen=True, kw_only=True):
    """Locate one package of the suite inside the repository."""

    directory: str
    primary: bool
    manifest_name: str = "package.json"
    lockfile_name: str = "package-lock.json"
    build_output_name: str = "lib"

    @property
    def manifest(self) -> str:
        """Return the manifest path relative to the repository root."""
        return _join(self.directory, self.manifest_name)

    @property
    def lockfile(self) -> str:
        """Return the lock file path relative to the repository root."""
        return _join(self.directory, self.lockfile_name)

    def root_path(self, repository_root: Path) -> Path:
        """Return the absolute package directory below ``repository_root``."""
        return repository_root / self.directory

    def manifest_path(self, repository_root: Path) -> Path:
        """Return the absolute manifest path below ``repository_root``."""
        return repository_root / self.manifest

    def build_output_path(self, repository_root: Path) -> Path:
        """Return the absolute build output directory below ``repository_root``."""
        return self.root_path(repository_root) / self.build_output_name


def _join(directory: str, name: str) -> str:
    return Path(directory, name).as_posix()


def describe_packages(packages: PackagesConfig) -> tuple[PackageDescriptor, ...]:
    """Return descriptors for ``packages`` with the primary package first."""
    if packages.primary is None:
        message = "No primary package configured; set packages.primary in lockstep.toml"
        raise PackageModelError(message)
    return tuple(
        PackageDescriptor(
            directory=directory,
            primary=index == 0,
            manifest_name=packages.manifest,
            lockfile_name=packages.lockfile,
            build_output_name=packages.build_output,
        )
        for index, directory in enumerate(packages.directories)
    )


def _read_manifest_bytes(manifest_path: Path) -> bytes:
    try:
        return manifest_path.read_bytes()
    except FileNotFoundError as exc:
        message = f"Package manifest not found at {manifest_path}"
        raise PackageModelError(message) from exc
    except OSError as exc:
        message = f"Unable to read package manifest at {manifest_path}: {exc}"
        raise PackageModelError(message) from exc


def load_manifest(manifest_path: Path) -> PackageManifest:
    """Decode the publishing-relevant fields from ``manifest_path``."""
    payload = _read_manifest_bytes(manifest_path)
    try:
        return msgspec.json.decode(payload, type=PackageManifest)
    except msgspec.DecodeError as exc:
        message = f"Invalid package manifest {manifest_path}: {exc}"
        raise PackageModelError(message) from exc


def load_manifest_document(manifest_path: Path) -> dict[str, typ.Any]:
    """Return the complete JSON object stored at ``manifest_path``."""
    payload = _read_manifest_bytes(manifest_path)
    try:
        document = msgspec.json.decode(payload)
    except msgspec.DecodeError as exc:
        message = f"Invalid package manifest {manifest_path}: {exc}"
        raise PackageModelError(message) from exc
    if not isinstance(document, dict):
        message = f"Package manifest {manifest_path} must contain a JSON object"
        raise PackageModelError(message)
    return document


def write_manifest_document(manifest_path: Path, document: dict[str, typ.Any]) -> None:
    """Persist ``document`` as indented JSON, keeping key order."""
    encoded = msgspec.json.format(msgspec.json.encode(document), indent=_MANIFEST_INDENT)
    try:
        manifest_path.write_bytes(encoded + b"\n")
    except OSError as exc:
        message = f"Failed to write manifest to {manifest_path}: {exc}"
        raise PackageModelError(message) from exc


def apply_version(
    document: dict[str, typ.Any],
    version: str,
    *,
    peer_dependency: str,
) -> dict[str, typ.Any]:
    """Return a copy of ``document`` bumped to ``version``.

    The peer dependency on ``peer_dependency`` is rewritten too when the
    manifest declares one.
    """
    updated = dict(document)
    updated["version"] = version
    peers = updated.get("peerDependencies")
    if isinstance(peers, dict) and peer_dependency in peers:
        updated["peerDependencies"] = {**peers, peer_dependency: version}
    return updated


__all__ = [
    "PackageDescriptor",
    "PackageManifest",
    "PackageModelError",
    "apply_version",
    "describe_packages",
    "load_manifest",
    "load_manifest_document",
    "write_manifest_document",
]
