"""Version and one-time password input handling."""

from __future__ import annotations

import logging
import re
import typing as typ

from lockstep.commands.publish_errors import InvalidVersionError

if typ.TYPE_CHECKING:
    from collections import abc as cabc

LOGGER = logging.getLogger("lockstep.commands.publish")

Prompt = typ.Callable[[str], str]

VERSION_PROMPT = "Enter a new version: "
OTP_PROMPT = "OTP token? "

_VERSION_PATTERN = re.compile(r"[0-9]+\.[0-9]+\.[0-9]+(?:-[A-Za-z0-9.]+)?")
_OTP_PATTERN = re.compile(r"[0-9]{6}")


def is_valid_version(value: str) -> bool:
    """Return ``True`` when ``value`` looks like ``MAJOR.MINOR.PATCH[-PRE]``."""
    return _VERSION_PATTERN.fullmatch(value) is not None


def is_valid_otp(value: str) -> bool:
    """Return ``True`` when ``value`` is exactly six digits."""
    return _OTP_PATTERN.fullmatch(value) is not None


def validate_version_argument(version: str | None) -> None:
    """Reject a malformed explicit version before anything else runs."""
    if version is not None and not is_valid_version(version):
        raise InvalidVersionError(version)


def _prompt_until_valid(
    prompt: Prompt,
    label: str,
    validator: cabc.Callable[[str], bool],
    rejection: str,
    *,
    secret: bool = False,
) -> str:
    while True:
        value = prompt(label).strip()
        if validator(value):
            return value
        if value:
            if secret:
                LOGGER.warning("%s", rejection)
            else:
                LOGGER.warning("%s: %s", rejection, value)
            LOGGER.warning("Please try again.")


def resolve_version(
    explicit: str | None,
    current_version: cabc.Callable[[], str],
    *,
    prompt: Prompt,
    stdout: typ.TextIO,
) -> str:
    """Return the version to publish.

    An explicit version is validated once. Otherwise the current version is
    shown and the operator is prompted until a well-formed version is entered.
    """
    if explicit is not None:
        validate_version_argument(explicit)
        return explicit
    print(f"The current version is: {current_version()}", file=stdout)
    return _prompt_until_valid(
        prompt, VERSION_PROMPT, is_valid_version, "Invalid version number"
    )


def prompt_for_otp(prompt: Prompt) -> str:
    """Prompt for a one-time password until it is six digits."""
    return _prompt_until_valid(
        prompt, OTP_PROMPT, is_valid_otp, "Invalid OTP token", secret=True
    )


__all__ = [
    "OTP_PROMPT",
    "VERSION_PROMPT",
    "Prompt",
    "is_valid_otp",
    "is_valid_version",
    "prompt_for_otp",
    "resolve_version",
    "validate_version_argument",
]
