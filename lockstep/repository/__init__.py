"""Repository access for :mod:`lockstep`: git state and package manifests."""

from __future__ import annotations

from .git import GitError, GitRepository
from .models import (
    PackageDescriptor,
    PackageManifest,
    PackageModelError,
    apply_version,
    describe_packages,
    load_manifest,
    load_manifest_document,
    write_manifest_document,
)

__all__ = [
    "GitError",
    "GitRepository",
    "PackageDescriptor",
    "PackageManifest",
    "PackageModelError",
    "apply_version",
    "describe_packages",
    "load_manifest",
    "load_manifest_document",
    "write_manifest_document",
]
