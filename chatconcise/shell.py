"""Run approved commands in a subshell and capture what they print."""

import os
import signal
import subprocess
import sys
from dataclasses import dataclass

_KILL_WAIT_TIMEOUT = 5  # seconds to wait for process to die after kill signals
_DRAIN_TIMEOUT = 2  # seconds to drain pipes after the kill


@dataclass
class CommandResult:
    stdout: str
    stderr: str
    returncode: int


def _kill_process_tree(proc: subprocess.Popen) -> None:
    """Kill a process and its descendants, then wait for exit.

    Relies on start_new_session=True so the whole group can be signalled.
    """
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except OSError:
        pass  # already exited
    try:
        proc.kill()
    except OSError:
        pass  # already dead
    try:
        proc.wait(timeout=_KILL_WAIT_TIMEOUT)
    except subprocess.TimeoutExpired:
        pass  # unkillable, give up


def run_shell_command(command: str, timeout: float | None = None) -> CommandResult:
    """Execute a shell string via sh -c in the current directory.

    stdout and stderr are captured separately and decoded leniently. A
    non-zero exit is not an error here. OSError propagates when the shell
    cannot be spawned; subprocess.TimeoutExpired propagates after the process
    tree has been killed.
    """
    proc = subprocess.Popen(
        ["/bin/sh", "-c", command],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        stdin=subprocess.DEVNULL,
        start_new_session=sys.platform != "win32",
    )
    try:
        out, err = proc.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        _kill_process_tree(proc)
        try:
            proc.communicate(timeout=_DRAIN_TIMEOUT)
        except subprocess.TimeoutExpired:
            # a descendant outside the group still holds the pipes; output is lost
            proc.stdout.close()
            proc.stderr.close()
        raise
    return CommandResult(
        stdout=out.decode("utf-8", errors="replace"),
        stderr=err.decode("utf-8", errors="replace"),
        returncode=proc.returncode,
    )


def format_command_output(result: CommandResult) -> str:
    """The user turn fed back to the model after a command ran.

    Both streams go in verbatim. The exit status is not included.
    """
    return f"Command output:\nstdout:\n{result.stdout}\nstderr:\n{result.stderr}"


def format_spawn_failure(error: BaseException) -> str:
    return f"Command failed: {error}"
