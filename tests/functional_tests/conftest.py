"""
Shared fixtures: a stand-in tesseract executable and a scratch working directory.

The fake engine records each recognition call in calls.log (one line of argv
per call) and writes canned result files, so no real Tesseract is needed.
Its behavior is steered with environment variables:

    FAKE_TEXT         content of <stem>.txt (default: 'hello world')
    FAKE_BOX          content of <stem>.box (default: two glyph lines)
    FAKE_EXIT         exit status (default: 0)
    FAKE_SLEEP        seconds to sleep before writing anything
    FAKE_NO_ARTIFACT  when set, no result file is written
"""

import stat
import sys
from pathlib import Path

import pytest

# Add repo root to path for imports
repo_root = Path(__file__).resolve().parent.parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from engines.ocr.locator import EngineLocator, TesseractPath  # noqa: E402
from utilities import set_quiet  # noqa: E402

FAKE_TESSERACT = r"""#!/bin/sh
# no arguments: start check
[ $# -eq 0 ] && exit 0

if [ "$1" = "--version" ]; then
    echo "tesseract 5.3.0"
    echo " leptonica-1.82.0"
    exit 0
fi

printf '%s\n' "$*" >> calls.log

if [ -n "$FAKE_SLEEP" ]; then
    sleep "$FAKE_SLEEP" >/dev/null 2>&1
fi

for last; do :; done

if [ -z "$FAKE_NO_ARTIFACT" ]; then
    if [ "$last" = "makebox" ]; then
        if [ -n "$FAKE_BOX" ]; then
            printf '%s' "$FAKE_BOX" > "$2.box"
        else
            printf 'A 10 20 30 40\nB 11 21 31 41\n' > "$2.box"
        fi
    else
        printf '%s' "${FAKE_TEXT:-hello world}" > "$2.txt"
    fi
fi

echo "Estimating resolution as 150" >&2
exit "${FAKE_EXIT:-0}"
"""

posix_only = pytest.mark.skipif(sys.platform.startswith('win'), reason="fake engine is a POSIX shell script")


@pytest.fixture(autouse=True)
def quiet_logs():
    set_quiet(True)
    yield
    set_quiet(False)


@pytest.fixture
def fake_tesseract(tmp_path) -> Path:
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    script = bin_dir / "tesseract"
    script.write_text(FAKE_TESSERACT)
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


@pytest.fixture
def locator(fake_tesseract) -> EngineLocator:
    return EngineLocator(TesseractPath.use_certain_path(str(fake_tesseract)))


@pytest.fixture
def workdir(tmp_path, monkeypatch) -> Path:
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    return work


def read_calls(workdir: Path) -> list:
    calls_log = workdir / "calls.log"
    if not calls_log.exists():
        return []
    return calls_log.read_text().splitlines()
