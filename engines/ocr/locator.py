"""
Tesseract binary location for tesspipe.

A location is a path or bare command name. It lives in an EngineLocator, a
small handle guarded by a multiple-reader/single-writer lock: any number of
invocations may read it at once, a writer waits for in-flight reads and then
swaps the whole TesseractPath object in one step.

Callers that want no shared state create their own EngineLocator and hand it
to the engine. DEFAULT_LOCATOR is the process-wide handle used by the
module-level shortcuts; it lives as long as the interpreter.
"""

import os
import subprocess
import sys
import threading
from typing import Optional

from utilities import Print

# Seconds can_spawn waits before killing the started process
SPAWN_CHECK_WAIT_SECONDS = 2.0


def _is_windows() -> bool:
    return sys.platform.startswith('win')


class ReadWriteLock:
    """Multiple readers or one writer. Waiting writers block new readers."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()


class TesseractPath:
    """A resolved engine location. Build one with the use_* strategies."""

    def __init__(self, path: Optional[str] = None):
        self.path = path

    @classmethod
    def new(cls) -> "TesseractPath":
        return cls(None)

    @classmethod
    def use_current_dir(cls) -> "TesseractPath":
        """<cwd>/tesseract/tesseract, with .exe on Windows."""
        try:
            cwd = os.getcwd()
        except OSError:
            return cls.new()
        binary = 'tesseract.exe' if _is_windows() else 'tesseract'
        return cls(f"{cwd}/tesseract/{binary}")

    @classmethod
    def use_certain_path(cls, path: str) -> "TesseractPath":
        return cls(str(path))

    @classmethod
    def use_default(cls) -> "TesseractPath":
        """Bare command name, resolved through the OS executable search path."""
        return cls('tesseract.exe' if _is_windows() else 'tesseract')

    def __repr__(self) -> str:
        return f"TesseractPath({self.path!r})"


# Names accepted by EngineLocator.from_config()['location_strategy']
LOCATION_STRATEGIES = {
    'working-directory': TesseractPath.use_current_dir,
    'system-default': TesseractPath.use_default,
}


class EngineLocator:
    """Holds the engine location behind a read/write lock."""

    def __init__(self, location: Optional[TesseractPath] = None):
        self._lock = ReadWriteLock()
        self._location = location if location is not None else TesseractPath.new()

    @classmethod
    def from_config(cls, config: dict) -> "EngineLocator":
        """
        Build a locator from an engine config section.

        Args:
            config: Dictionary with either:
                - binary_path: explicit path or command name
                - location_strategy: 'explicit', 'working-directory' or 'system-default'

        Raises:
            ValueError: If the strategy is unknown or 'explicit' lacks binary_path
        """
        strategy = config.get('location_strategy', 'explicit')
        if strategy == 'explicit':
            binary_path = config.get('binary_path')
            if not binary_path:
                raise ValueError("location_strategy 'explicit' requires 'binary_path'")
            return cls(TesseractPath.use_certain_path(binary_path))
        if strategy not in LOCATION_STRATEGIES:
            available = ', '.join(['explicit', *LOCATION_STRATEGIES])
            raise ValueError(
                f"Unknown location strategy: '{strategy}'. "
                f"Available strategies: {available}"
            )
        return cls(LOCATION_STRATEGIES[strategy]())

    def set_location(self, location: TesseractPath) -> None:
        self._lock.acquire_write()
        try:
            self._location = location
        finally:
            self._lock.release_write()

    def set_path(self, path: str) -> None:
        """Overwrite the location unconditionally."""
        self.set_location(TesseractPath.use_certain_path(path))

    def get_path(self) -> Optional[str]:
        self._lock.acquire_read()
        try:
            return self._location.path
        finally:
            self._lock.release_read()

    def is_installed(self) -> bool:
        """
        True iff the configured location can be spawned.

        This is not a version check. Any executable at that location passes.
        """
        return can_spawn(self.get_path())


def can_spawn(path: Optional[str]) -> bool:
    """
    Start path with no arguments and its output discarded. True iff the
    spawn succeeds.
    """
    if path is None:
        Print("WARNING", "Tesseract location is not set")
        return False

    try:
        proc = subprocess.Popen(
            [path],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            creationflags=getattr(subprocess, 'CREATE_NO_WINDOW', 0),
        )
    except OSError as e:
        Print("DEBUG", f"Tesseract could not be started from '{path}': {e}")
        return False

    try:
        proc.wait(timeout=SPAWN_CHECK_WAIT_SECONDS)
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.wait()
    return True


# Starts unset; callers pick a strategy before the first invocation
DEFAULT_LOCATOR = EngineLocator()


def set_tesseract_installed_path(path: str) -> None:
    DEFAULT_LOCATOR.set_path(path)


def get_tesseract_installed_path() -> Optional[str]:
    return DEFAULT_LOCATOR.get_path()


def check_if_installed() -> bool:
    return DEFAULT_LOCATOR.is_installed()
