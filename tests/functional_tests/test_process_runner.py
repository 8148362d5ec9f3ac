"""
Process runner tests against small shell commands.
"""

import threading
import time

import pytest

from conftest import posix_only
from engines.ocr.errors import InvocationCancelledError, InvocationError, InvocationTimeoutError
from engines.ocr.runner import InvocationResult, run_command, streams_to_text

pytestmark = posix_only


def test_stdout_is_preferred():
    result = InvocationResult(stdout=b"line one\nline two\n", stderr=b"warning\n", returncode=0)
    assert streams_to_text(result) == "line one\nline two"


def test_stderr_when_stdout_is_empty():
    result = InvocationResult(stdout=b"", stderr=b"Estimating resolution as 150\n", returncode=0)
    assert streams_to_text(result) == "Estimating resolution as 150"


def test_both_streams_are_captured(capfd):
    result = run_command(["sh", "-c", "echo to-out; echo to-err >&2"])

    assert result.stdout == b"to-out\n"
    assert result.stderr == b"to-err\n"
    assert result.returncode == 0
    captured = capfd.readouterr()
    assert "to-out" not in captured.out
    assert "to-err" not in captured.err


def test_non_zero_exit_is_not_fatal():
    result = run_command(["sh", "-c", "echo failed >&2; exit 3"])
    assert result.returncode == 3
    assert not result.terminated_by_signal
    assert streams_to_text(result) == "failed"


def test_signal_termination_is_reported():
    result = run_command(["sh", "-c", "kill -9 $$"])
    assert result.terminated_by_signal
    assert result.returncode == -9


def test_spawn_failure(tmp_path):
    with pytest.raises(InvocationError):
        run_command([str(tmp_path / "missing-binary"), "--version"])


def test_timeout_kills_child():
    started = time.monotonic()
    with pytest.raises(InvocationTimeoutError):
        run_command(["sleep", "10"], timeout=0.3)
    assert time.monotonic() - started < 5


def test_timeout_with_cancel_event():
    with pytest.raises(InvocationTimeoutError):
        run_command(["sleep", "10"], timeout=0.3, cancel_event=threading.Event())


def test_cancel_event_kills_child():
    cancel = threading.Event()
    timer = threading.Timer(0.3, cancel.set)
    timer.start()
    started = time.monotonic()
    try:
        with pytest.raises(InvocationCancelledError):
            run_command(["sleep", "10"], cancel_event=cancel)
    finally:
        timer.cancel()
    assert time.monotonic() - started < 5


def test_cancellable_run_completes_normally():
    result = run_command(["sh", "-c", "echo done"], cancel_event=threading.Event())
    assert result.stdout == b"done\n"
