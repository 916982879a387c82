"""Utility helpers for the :mod:`lockstep` package."""

from __future__ import annotations

from .path import normalise_repository_root

__all__ = ["normalise_repository_root"]
