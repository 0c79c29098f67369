"""Tests for running approved commands."""

import shutil
import subprocess
import time

import pytest

from chatconcise.shell import (
    CommandResult,
    format_command_output,
    format_spawn_failure,
    run_shell_command,
)


def test_captures_stdout():
    result = run_shell_command("echo hello")
    assert result.stdout == "hello\n"
    assert result.stderr == ""
    assert result.returncode == 0


def test_captures_stderr_separately():
    result = run_shell_command("echo out; echo err >&2")
    assert result.stdout == "out\n"
    assert result.stderr == "err\n"


def test_nonzero_exit_is_not_an_error():
    result = run_shell_command("echo oops >&2; exit 3")
    assert result.returncode == 3
    assert result.stderr == "oops\n"


def test_shell_syntax_supported():
    result = run_shell_command("printf 'a\\nb\\n' | wc -l")
    assert result.stdout.strip() == "2"


def test_stdin_is_closed():
    result = run_shell_command("cat")
    assert result.stdout == ""


def test_invalid_utf8_is_replaced():
    result = run_shell_command("printf '\\377'")
    assert result.stdout == "�"


def test_runs_in_current_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "marker.txt").write_text("x")
    assert "marker.txt" in run_shell_command("ls").stdout


def test_timeout_kills_command():
    t0 = time.monotonic()
    with pytest.raises(subprocess.TimeoutExpired):
        run_shell_command("sleep 30", timeout=1)
    assert time.monotonic() - t0 < 10


@pytest.mark.skipif(shutil.which("setsid") is None, reason="setsid not available")
def test_timeout_not_held_up_by_detached_descendant():
    t0 = time.monotonic()
    with pytest.raises(subprocess.TimeoutExpired):
        run_shell_command("setsid sleep 30 & sleep 20", timeout=1)
    assert time.monotonic() - t0 < 15


def test_spawn_failure_raises_oserror(monkeypatch):
    def fake_popen(*args, **kwargs):
        raise FileNotFoundError(2, "No such file or directory", "/bin/sh")

    monkeypatch.setattr(subprocess, "Popen", fake_popen)
    with pytest.raises(OSError):
        run_shell_command("ls")


class TestFeedbackFormat:
    def test_output_sections_verbatim(self):
        text = format_command_output(CommandResult("hello\n", "warn\n", 1))
        assert text == "Command output:\nstdout:\nhello\n\nstderr:\nwarn\n"

    def test_exit_status_not_reported(self):
        text = format_command_output(CommandResult("", "", 127))
        assert "127" not in text

    def test_spawn_failure_message(self):
        assert format_spawn_failure(OSError("no shell")) == "Command failed: no shell"
