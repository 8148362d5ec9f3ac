"""
Child process execution for Tesseract.

The engine writes progress and errors to its streams but the recognition
payload to a file, so the captured streams only feed diagnostics.
"""

import subprocess
import threading
import time
from dataclasses import dataclass
from typing import List, Optional

from utilities import Print, decode_stream
from .errors import InvocationCancelledError, InvocationError, InvocationTimeoutError

# How often a cancellable run checks its cancel event
POLL_INTERVAL_SECONDS = 0.1


@dataclass
class InvocationResult:
    """Captured streams and exit status of one engine run."""
    stdout: bytes
    stderr: bytes
    returncode: Optional[int]

    @property
    def terminated_by_signal(self) -> bool:
        # Popen reports -N for a child killed by signal N on POSIX
        return self.returncode is not None and self.returncode < 0


def streams_to_text(result: InvocationResult) -> str:
    """stdout lines joined with newlines, or stderr lines when stdout is empty."""
    raw = result.stderr if len(result.stdout) == 0 else result.stdout
    return "\n".join(decode_stream(raw).splitlines())


def _kill(proc: subprocess.Popen) -> None:
    proc.kill()
    proc.communicate()


def _wait_cancellable(
    proc: subprocess.Popen,
    timeout: Optional[float],
    cancel_event: threading.Event,
):
    deadline = None if timeout is None else time.monotonic() + timeout
    while True:
        if cancel_event.is_set():
            _kill(proc)
            raise InvocationCancelledError("Tesseract invocation was cancelled")

        wait = POLL_INTERVAL_SECONDS
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                _kill(proc)
                raise InvocationTimeoutError(f"Tesseract timed out after {timeout} seconds")
            wait = min(wait, remaining)

        try:
            return proc.communicate(timeout=wait)
        except subprocess.TimeoutExpired:
            # communicate() keeps the partial output and may be called again
            continue


def run_command(
    cmd: List[str],
    timeout: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
) -> InvocationResult:
    """
    Run the engine and block until it exits.

    Args:
        cmd: Full command, executable first
        timeout: Seconds before the child is killed (None waits forever)
        cancel_event: When set by another thread, the child is killed

    Returns:
        InvocationResult with both streams captured

    Raises:
        InvocationError: If the process cannot be spawned
        InvocationTimeoutError: If the timeout elapsed
        InvocationCancelledError: If cancel_event was set
    """
    Print("DEBUG", f"Running: {' '.join(cmd)}")

    try:
        proc = subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            creationflags=getattr(subprocess, 'CREATE_NO_WINDOW', 0),
        )
    except OSError as e:
        raise InvocationError(f"Could not start Tesseract '{cmd[0]}': {e}") from e

    if cancel_event is not None:
        stdout, stderr = _wait_cancellable(proc, timeout, cancel_event)
    else:
        try:
            stdout, stderr = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            _kill(proc)
            raise InvocationTimeoutError(f"Tesseract timed out after {timeout} seconds")

    result = InvocationResult(stdout=stdout or b"", stderr=stderr or b"", returncode=proc.returncode)

    # Exit status is advisory: Tesseract may exit non-zero after writing usable output
    if result.terminated_by_signal:
        Print("WARNING", f"Process terminated by signal {-result.returncode}")
    elif result.returncode != 0:
        Print("WARNING", f"Exited with status code: {result.returncode}")
    else:
        Print("DEBUG", f"Exited with status code: {result.returncode}")

    return result
