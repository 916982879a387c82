"""Path helpers for :mod:`lockstep`."""

from __future__ import annotations

from pathlib import Path


def normalise_repository_root(value: Path | str | None) -> Path:
    """Return ``value`` as an absolute path, defaulting to the current directory."""
    if value is None:
        return Path.cwd().resolve()
    return Path(value).expanduser().resolve()


__all__ = ["normalise_repository_root"]
