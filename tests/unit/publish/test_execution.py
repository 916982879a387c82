"""Tests for the publish command runner."""

from __future__ import annotations

import io
import sys
import typing as typ
from pathlib import Path

import pytest

from lockstep.commands import publish_execution
from lockstep.commands.publish_errors import CommandFailedError

_SCRIPT = (
    "import sys; "
    "sys.stdout.write('out:' + sys.argv[1] + '\\n'); "
    "sys.stderr.write('err\\n'); "
    "sys.exit(int(sys.argv[2]))"
)


def test_invoke_streams_and_captures_output(
    capfd: pytest.CaptureFixture[str], tmp_path: Path
) -> None:
    """Echoed commands are relayed to the terminal and captured."""
    exit_code, stdout, stderr = publish_execution.invoke(
        (sys.executable, "-c", _SCRIPT, "héllo", "3"), cwd=tmp_path
    )

    assert exit_code == 3
    assert stdout == "out:héllo\n"
    assert stderr == "err\n"
    captured = capfd.readouterr()
    assert "out:héllo" in captured.out
    assert "err" in captured.err


def test_invoke_quietly_captures_output(capfd: pytest.CaptureFixture[str]) -> None:
    """Quiet commands are captured without touching the terminal."""
    exit_code, stdout, stderr = publish_execution.invoke(
        (sys.executable, "-c", _SCRIPT, "quiet", "0"), echo=False
    )

    assert (exit_code, stdout, stderr) == (0, "out:quiet\n", "err\n")
    captured = capfd.readouterr()
    assert "out:quiet" not in captured.out


@pytest.mark.parametrize("echo", [True, False])
def test_invoke_reports_missing_program(*, echo: bool) -> None:
    """Unknown programs yield the conventional shell status."""
    exit_code, stdout, stderr = publish_execution.invoke(
        ("lockstep-surely-missing-program",), echo=echo
    )

    assert exit_code == 127
    assert stdout == ""
    assert "lockstep-surely-missing-program" in stderr


def test_invoke_rejects_empty_command() -> None:
    """An empty command is a programming error."""
    with pytest.raises(ValueError, match="at least one entry"):
        publish_execution.invoke(())


def test_run_checked_returns_stdout() -> None:
    """Successful commands return their standard output."""

    def _runner(
        command: typ.Sequence[str], *, cwd: Path | None = None, echo: bool = True
    ) -> tuple[int, str, str]:
        return 0, "done\n", ""

    assert publish_execution.run_checked(_runner, ("npm", "run", "build")) == "done\n"


def test_run_checked_raises_with_combined_output() -> None:
    """Failures surface the exit code and redacted command line."""

    def _runner(
        command: typ.Sequence[str], *, cwd: Path | None = None, echo: bool = True
    ) -> tuple[int, str, str]:
        return 1, "partial\n", "E401\n"

    with pytest.raises(CommandFailedError) as excinfo:
        publish_execution.run_checked(_runner, ("npm", "publish", "--otp", "123456"))

    error = excinfo.value
    assert error.exit_code == 4
    assert error.command_exit_code == 1
    assert error.output == "partial\nE401\n"
    assert "123456" not in str(error)
    assert "Command failed with exit code 1" in str(error)


def test_run_quietly_returns_stdout_without_echo() -> None:
    """Successful quiet commands leave stderr untouched."""
    echoes: list[bool] = []

    def _runner(
        command: typ.Sequence[str], *, cwd: Path | None = None, echo: bool = True
    ) -> tuple[int, str, str]:
        echoes.append(echo)
        return 0, "formatted\n", ""

    stderr = io.StringIO()

    assert (
        publish_execution.run_quietly(
            _runner,
            ("prettier", "--write", "package.json"),
            cwd=None,
            stderr=stderr,
            context="unused",
        )
        == "formatted\n"
    )
    assert echoes == [False]
    assert stderr.getvalue() == ""


def test_run_quietly_dumps_output_and_keeps_log() -> None:
    """Failures print the captured output and context, and keep a log file."""

    def _runner(
        command: typ.Sequence[str], *, cwd: Path | None = None, echo: bool = True
    ) -> tuple[int, str, str]:
        return 1, "resolving\n", "npm ERR! ERESOLVE"

    stderr = io.StringIO()

    with pytest.raises(CommandFailedError) as excinfo:
        publish_execution.run_quietly(
            _runner,
            ("npm", "install"),
            cwd=None,
            stderr=stderr,
            context="The error above happened during the building of pkg.",
        )

    assert stderr.getvalue() == (
        "resolving\nnpm ERR! ERESOLVE\n"
        "\n"
        "The error above happened during the building of pkg.\n"
    )
    log_path = excinfo.value.log_path
    assert log_path is not None
    assert Path(log_path).name.startswith("lockstep-npm-")
    try:
        assert Path(log_path).read_text(encoding="utf-8") == (
            "resolving\nnpm ERR! ERESOLVE"
        )
    finally:
        Path(log_path).unlink()
    assert f"(log: {log_path})" in str(excinfo.value)
