"""Command-line interface for :mod:`lockstep`."""

from __future__ import annotations

import logging
import os
import sys
import typing as typ

from cyclopts import App, CycloptsError, Parameter

from lockstep import config
from lockstep.commands import publish as publish_command
from lockstep.commands.publish_errors import EXIT_USAGE, LockstepError
from lockstep.commands.publish_version import validate_version_argument
from lockstep.utils import normalise_repository_root

_VERSION_PARAMETER = Parameter(
    name=("--version", "-V"),
    help="Version to publish (default: prompt).",
)
VersionOption = typ.Annotated[str | None, _VERSION_PARAMETER]

_TAG_PARAMETER = Parameter(
    name=("--tag", "-t"),
    help="Distribution tag to publish under (default: latest).",
)
TagOption = typ.Annotated[str | None, _TAG_PARAMETER]

HELP_FLAGS: typ.Final[frozenset[str]] = frozenset({"-h", "--help"})

LOG_LEVEL_ENV_VAR = "LOCKSTEP_LOG_LEVEL"
_DEFAULT_LOG_LEVEL = logging.INFO
_LOG_FORMAT = "%(levelname)s: %(message)s"
_LOCKSTEP_HANDLER_NAME = "lockstep-cli-handler"
_LOG_LEVEL_ALIASES: dict[str, int] = {
    "CRITICAL": logging.CRITICAL,
    "FATAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}

app = App(
    name="lockstep",
    help="Publish a new version of every package in the suite.",
    version_flags=(),
)


def _resolve_log_level(value: str | None) -> int:
    """Return the configured log level or :data:`_DEFAULT_LOG_LEVEL`."""
    if value is None:
        return _DEFAULT_LOG_LEVEL
    candidate = value.strip()
    if not candidate:
        return _DEFAULT_LOG_LEVEL
    level = _LOG_LEVEL_ALIASES.get(candidate.upper())
    if level is None:
        choices = ", ".join(sorted(_LOG_LEVEL_ALIASES))
        message = (
            f"Invalid {LOG_LEVEL_ENV_VAR} value {value!r}; expected one of: {choices}"
        )
        raise SystemExit(message)
    return level


def _configure_logging(stream: typ.TextIO | None = None) -> None:
    """Configure root logging so command execution is visible on stderr."""
    level = _resolve_log_level(os.environ.get(LOG_LEVEL_ENV_VAR))
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    handler = next(
        (
            existing
            for existing in root_logger.handlers
            if getattr(existing, "name", "") == _LOCKSTEP_HANDLER_NAME
        ),
        None,
    )
    if handler is None:
        handler = logging.StreamHandler(stream)
        handler.name = _LOCKSTEP_HANDLER_NAME
        root_logger.addHandler(handler)
    elif stream is not None:
        handler.stream = stream
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))


def _report_error(message: str) -> None:
    """Print ``message`` to stderr framed by blank lines."""
    print(f"\n{message}\n", file=sys.stderr)


def _print_usage() -> None:
    app.help_print([])


@app.default
def publish(*, version: VersionOption = None, tag: TagOption = None) -> int:
    """Bump, build and publish every configured package.

    Parameters
    ----------
    version
        Version to publish; prompts when omitted.
    tag
        Distribution tag; when given the trunk branch check is skipped.

    """
    validate_version_argument(version)
    repository_root = normalise_repository_root(None)
    configuration = config.load_configuration(repository_root)
    with config.use_configuration(configuration):
        result = publish_command.run(
            publish_command.PublishOptions(
                version=version,
                tag=tag,
                cwd=repository_root,
            )
        )
    logging.getLogger(__name__).debug(
        "Published %s under %s", result.version, result.tag
    )
    return 0


def _dispatch(tokens: typ.Sequence[str]) -> int:
    """Execute the Cyclopts app and translate its outcome into an exit code."""
    try:
        result = app(list(tokens), exit_on_error=False, print_error=True)
    except CycloptsError:
        _print_usage()
        return EXIT_USAGE
    except SystemExit as err:
        code = err.code
        if code is None:
            return 0
        if isinstance(code, int):
            return code
        print(code, file=sys.stderr)
        return 1
    if isinstance(result, int):
        return result
    return 0


def main(argv: typ.Sequence[str] | None = None) -> int:
    """Entry point for the ``lockstep`` console script."""
    try:
        tokens = list(sys.argv[1:] if argv is None else argv)
        if HELP_FLAGS.intersection(tokens):
            _print_usage()
            return EXIT_USAGE
        _configure_logging()
        try:
            return _dispatch(tokens)
        except config.ConfigurationError as exc:
            print(f"Configuration error: {exc}", file=sys.stderr)
            return 1
        except LockstepError as exc:
            _report_error(str(exc))
            return exc.exit_code
    except KeyboardInterrupt:
        print("\nOperation cancelled by user.", file=sys.stderr)
        return 130
    except Exception as exc:  # noqa: BLE001 - fallback guard for CLI entry point
        print(f"Unexpected error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover - convenience entry point
    raise SystemExit(main())
