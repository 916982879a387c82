"""Command execution helpers for publish operations."""

from __future__ import annotations

import codecs
import logging
import re
import subprocess
import sys
import tempfile
import threading
import typing as typ
from pathlib import Path

from plumbum import local
from plumbum.commands.processes import CommandNotFound

from lockstep.commands.publish_errors import CommandFailedError
from lockstep.utils.process import format_command, log_command_invocation

LOGGER = logging.getLogger("lockstep.commands.publish")

_THREAD_NAME_PATTERN = re.compile(r"[^A-Za-z0-9_.-]+")
_STREAM_CHUNK_SIZE = 4096
_COMMAND_NOT_FOUND_EXIT = 127


class CommandRunner(typ.Protocol):
    """Protocol describing the callable used to execute external commands."""

    def __call__(
        self,
        command: typ.Sequence[str],
        *,
        cwd: Path | None = None,
        echo: bool = True,
    ) -> tuple[int, str, str]:
        """Execute ``command`` and return exit status and decoded output.

        When ``echo`` is false the output is captured without being relayed to
        the terminal.
        """


def invoke(
    command: typ.Sequence[str],
    *,
    cwd: Path | None = None,
    echo: bool = True,
) -> tuple[int, str, str]:
    """Execute ``command`` and return the exit status and decoded streams."""
    log_command_invocation(LOGGER, command, cwd)
    program, args = _split_command(command)
    if echo:
        return _invoke_via_subprocess(program, args, cwd=cwd)
    return _invoke_captured(program, args, cwd=cwd)


def run_checked(
    runner: CommandRunner,
    command: typ.Sequence[str],
    *,
    cwd: Path | None = None,
    echo: bool = True,
) -> str:
    """Run ``command`` through ``runner`` and return stdout, raising on failure."""
    exit_code, stdout, stderr = runner(command, cwd=cwd, echo=echo)
    if exit_code != 0:
        raise CommandFailedError(
            format_command(command), exit_code, output=f"{stdout}{stderr}"
        )
    return stdout


def run_quietly(
    runner: CommandRunner,
    command: typ.Sequence[str],
    *,
    cwd: Path | None,
    stderr: typ.TextIO,
    context: str,
) -> str:
    """Run ``command`` without echo; on failure dump its output and raise.

    The captured output is printed to ``stderr`` followed by ``context`` and
    kept in a temporary log file whose path is attached to the error.
    """
    exit_code, stdout, errors = runner(command, cwd=cwd, echo=False)
    if exit_code == 0:
        return stdout
    output = f"{stdout}{errors}"
    log_path = _write_failure_log(command[0], output)
    if output:
        print(output, file=stderr, end="" if output.endswith("\n") else "\n")
        print("", file=stderr)
    print(context, file=stderr)
    raise CommandFailedError(
        format_command(command), exit_code, output=output, log_path=log_path
    )


def _write_failure_log(program: str, output: str) -> str:
    with tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        prefix=f"lockstep-{_safe_program_name(program)}-",
        suffix=".log",
        delete=False,
    ) as handle:
        handle.write(output)
    return handle.name


def _split_command(command: typ.Sequence[str]) -> tuple[str, tuple[str, ...]]:
    """Return the program and argument tuple for ``command``."""
    if not command:
        message = "Command sequence must contain at least one entry"
        raise ValueError(message)
    return command[0], tuple(command[1:])


def _invoke_captured(
    program: str,
    args: tuple[str, ...],
    *,
    cwd: Path | None,
) -> tuple[int, str, str]:
    """Run ``program`` quietly through plumbum and return its output."""
    try:
        executable = local[program]
    except CommandNotFound:
        return _COMMAND_NOT_FOUND_EXIT, "", f"{program}: command not found\n"
    exit_code, stdout, stderr = executable[list(args)].run(
        retcode=None, cwd=None if cwd is None else str(cwd)
    )
    return exit_code, _coerce_text(stdout), _coerce_text(stderr)


def _coerce_text(value: str | bytes) -> str:
    """Normalise process output to text."""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def _invoke_via_subprocess(
    program: str,
    args: tuple[str, ...],
    *,
    cwd: Path | None,
) -> tuple[int, str, str]:
    """Spawn ``program`` with ``args`` while proxying its output streams."""
    command = (program, *args)
    try:
        process = subprocess.Popen(  # noqa: S603 - command list is fully controlled
            command,
            cwd=None if cwd is None else str(cwd),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except (FileNotFoundError, PermissionError) as exc:
        LOGGER.debug("Failed to spawn %s: %s", format_command(command), exc)
        return _COMMAND_NOT_FOUND_EXIT, "", f"Failed to execute {program!r}: {exc}\n"

    stdout_chunks: list[str] = []
    stderr_chunks: list[str] = []
    threads = [
        threading.Thread(
            target=_relay_stream,
            args=(process.stdout, sys.stdout, stdout_chunks),
            name=_format_thread_name(program, "stdout"),
            daemon=True,
        ),
        threading.Thread(
            target=_relay_stream,
            args=(process.stderr, sys.stderr, stderr_chunks),
            name=_format_thread_name(program, "stderr"),
            daemon=True,
        ),
    ]
    for thread in threads:
        thread.start()
    exit_code = process.wait()
    for thread in threads:
        thread.join()
    return exit_code, "".join(stdout_chunks), "".join(stderr_chunks)


def _relay_stream(
    source: typ.IO[bytes] | None,
    sink: typ.TextIO | None,
    buffer: list[str],
) -> None:
    """Forward ``source`` into ``sink`` while preserving the captured output."""
    if source is None:
        return
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    active_sink = sink
    try:
        while True:
            chunk = source.read1(_STREAM_CHUNK_SIZE)  # type: ignore[attr-defined]
            if not chunk:
                break
            text = decoder.decode(chunk)
            if text:
                buffer.append(text)
                active_sink = _write_to_sink(active_sink, text)
        tail = decoder.decode(b"", final=True)
        if tail:
            buffer.append(tail)
            _write_to_sink(active_sink, tail)
    finally:
        source.close()


def _write_to_sink(sink: typ.TextIO | None, payload: str) -> typ.TextIO | None:
    """Write ``payload`` to ``sink`` and stop relaying on broken pipes."""
    if sink is None or not payload:
        return sink
    try:
        sink.write(payload)
        sink.flush()
    except BrokenPipeError:
        return None
    return sink


def _safe_program_name(program: str) -> str:
    base = Path(program).name or program
    return _THREAD_NAME_PATTERN.sub("-", base).strip("-") or "command"


def _format_thread_name(program: str, stream: str) -> str:
    """Return a deterministic, filesystem-safe thread name suffix."""
    return f"lockstep-publish-{_safe_program_name(program)}-{stream}"


__all__ = ["LOGGER", "CommandRunner", "invoke", "run_checked", "run_quietly"]
