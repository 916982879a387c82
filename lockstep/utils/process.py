"""Process logging helpers for :mod:`lockstep`."""

from __future__ import annotations

import logging
import shlex
import typing as typ

if typ.TYPE_CHECKING:
    from logging import Logger as LoggerType
    from pathlib import Path as PathType
else:  # pragma: no cover - type-only imports
    LoggerType = typ.Any
    PathType = typ.Any


_LOGGER = logging.getLogger(__name__)

REDACTED = "<redacted>"
_SECRET_FLAGS: typ.Final[frozenset[str]] = frozenset({"--otp"})


def redact_command(command: typ.Sequence[str]) -> tuple[str, ...]:
    """Return ``command`` with values following secret flags masked."""
    redacted: list[str] = []
    mask_next = False
    for argument in command:
        if mask_next:
            redacted.append(REDACTED)
            mask_next = False
            continue
        flag, separator, _value = argument.partition("=")
        if flag in _SECRET_FLAGS:
            if separator:
                redacted.append(f"{flag}={REDACTED}")
            else:
                redacted.append(argument)
                mask_next = True
            continue
        redacted.append(argument)
    return tuple(redacted)


def format_command(command: typ.Sequence[str]) -> str:
    """Return a shell-style, secret-free rendering of ``command`` for logging."""
    if not command:
        _LOGGER.warning(
            "format_command received an empty command sequence; this is likely a bug."
        )
        return ""
    return shlex.join(redact_command(command))


def log_command_invocation(
    logger: LoggerType,
    command: typ.Sequence[str],
    cwd: PathType | None,
) -> None:
    """Log ``command`` with optional ``cwd`` using ``logger``."""
    rendered = format_command(command) or "<empty command>"
    if cwd is None:
        logger.info("Running external command: %s", rendered)
    else:
        logger.info("Running external command: %s (cwd=%s)", rendered, cwd)


__all__ = ["REDACTED", "format_command", "log_command_invocation", "redact_command"]
