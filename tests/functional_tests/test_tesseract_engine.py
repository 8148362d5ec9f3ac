#!/usr/bin/env python3
"""
Functional tests for the Tesseract engine and the tesspipe facade.

A stand-in tesseract script (see conftest.py) records its arguments and writes
canned result files, so these tests exercise the full invocation:
validation, start check, materialization, argument building, process execution and
artifact parsing.
"""

import subprocess
import sys

import numpy as np
import pytest
from PIL import Image

import tesspipe
from conftest import posix_only, read_calls
from engines.ocr import get_ocr_engine
from engines.ocr.args import OcrArgs
from engines.ocr.errors import (
    ArtifactReadError,
    CoordinateParseError,
    EngineNotInstalledError,
    ImageFormatError,
    ImageNotFoundError,
    InvocationTimeoutError,
)
from engines.ocr.image import ImageSource
from engines.ocr.locator import EngineLocator
from engines.ocr.tesseract import TesseractEngine

pytestmark = posix_only


@pytest.fixture
def engine(locator):
    return TesseractEngine({}, locator=locator)


@pytest.fixture
def scan(workdir):
    path = workdir / "scan.png"
    Image.new("RGB", (40, 20), "white").save(path)
    return ImageSource(str(path))


def test_registry_creates_engine(fake_tesseract):
    engine = get_ocr_engine("tesseract", {"binary_path": str(fake_tesseract), "psm": 6})
    assert engine.name == "tesseract"
    assert engine.locator.get_path() == str(fake_tesseract)
    assert engine.default_args.config == {"psm": "6"}

    with pytest.raises(ValueError):
        get_ocr_engine("easyocr", {})


def test_initialize_records_version(engine, workdir):
    engine.initialize({})
    assert engine.version == "tesseract 5.3.0"
    assert engine.get_version() == "tesseract 5.3.0\n leptonica-1.82.0"


def test_initialize_without_binary(tmp_path):
    engine = TesseractEngine({"binary_path": str(tmp_path / "missing")})
    with pytest.raises(EngineNotInstalledError):
        engine.initialize({})
    assert engine.get_version() == ""


def test_image_to_string(engine, scan, workdir):
    output = engine.image_to_string(scan, OcrArgs())

    assert output.output_string == "hello world"
    assert output.output_bytes == b"hello world"
    assert output.output_dict == {}
    assert output.output_dataframe == []
    assert output.output_info == "Estimating resolution as 150"
    assert read_calls(workdir) == [
        f"{scan.path} out -l eng --dpi 150 --psm 3 --oem 3 -c tessedit_create_tsv=0"
    ]


def test_configured_flags_reach_the_engine(engine, scan, workdir):
    args = OcrArgs(out_filename="page", lang="chi_sim", dpi=300, config={"psm": "6", "oem": "1"})
    engine.image_to_string(scan, args)

    assert read_calls(workdir) == [
        f"{scan.path} page -l chi_sim --dpi 300 --psm 6 --oem 1 -c tessedit_create_tsv=0"
    ]
    assert (workdir / "page.txt").exists()


def test_image_to_boxes(engine, scan, workdir):
    args = OcrArgs()
    output = engine.image_to_boxes(scan, args)

    assert output.output_dict == {"A": ["10 20 30 40"], "B": ["11 21 31 41"]}
    assert [(c.name, c.tolist()) for c in output.output_dataframe] == [
        ("A", [10, 20, 30, 40]),
        ("B", [11, 21, 31, 41]),
    ]
    assert read_calls(workdir)[0].endswith("-c tessedit_create_tsv=0 makebox")
    # The caller's args are not switched to box mode
    assert not args.boxfile


def test_image_to_data_merges_text_and_box_passes(engine, scan, workdir):
    text_only = engine.image_to_string(scan, OcrArgs())
    boxes_only = engine.image_to_boxes(scan, OcrArgs())
    merged = engine.image_to_data(scan, OcrArgs())

    assert merged.output_string == text_only.output_string
    assert merged.output_bytes == text_only.output_bytes
    assert merged.output_dict == boxes_only.output_dict
    assert [(c.name, c.tolist()) for c in merged.output_dataframe] == [
        (c.name, c.tolist()) for c in boxes_only.output_dataframe
    ]


def test_tsv_pass_is_an_extra_run_with_no_effect_on_output(engine, scan, workdir):
    with_tsv = engine.image_to_data(scan, OcrArgs(), tsv_pass=True)
    calls = read_calls(workdir)
    assert len(calls) == 3
    assert calls[2].endswith("-c tessedit_create_tsv=1")

    (workdir / "calls.log").unlink()
    without_tsv = engine.image_to_data(scan, OcrArgs(), tsv_pass=False)
    assert len(read_calls(workdir)) == 2

    assert with_tsv.output_string == without_tsv.output_string
    assert with_tsv.output_dict == without_tsv.output_dict


def test_missing_image_never_spawns(engine, workdir, monkeypatch):
    def no_spawn(*args, **kwargs):
        raise AssertionError("a child process was started")

    monkeypatch.setattr(subprocess, "Popen", no_spawn)

    with pytest.raises(ImageNotFoundError):
        engine.image_to_string(ImageSource(), OcrArgs())
    with pytest.raises(ImageFormatError):
        engine.image_to_string(ImageSource("scan.pdf"), OcrArgs())


def test_buffer_is_materialized_before_invocation(engine, workdir):
    output = engine.image_to_string(ImageSource(ndarray=np.zeros((10, 10, 3), dtype=np.uint8)), OcrArgs())

    assert output.output_string == "hello world"
    assert sorted(p.name for p in workdir.glob("*.png")) == ["ndarray_converted.png"]
    assert read_calls(workdir)[0].startswith(f"{workdir / 'ndarray_converted.png'} out ")


def test_unique_invocation_names(engine, workdir):
    args = OcrArgs().with_unique_id()
    engine.image_to_string(ImageSource(ndarray=np.zeros((4, 4, 3), dtype=np.uint8)), args)

    assert (workdir / f"ndarray_converted_{args.invocation_id}.png").exists()
    assert (workdir / f"out_{args.invocation_id}.txt").exists()
    assert not (workdir / "out.txt").exists()


def test_engine_not_installed(scan):
    engine = TesseractEngine({}, locator=EngineLocator())
    with pytest.raises(EngineNotInstalledError):
        engine.image_to_string(scan, OcrArgs())


def test_missing_artifact(engine, scan, monkeypatch):
    monkeypatch.setenv("FAKE_NO_ARTIFACT", "1")
    with pytest.raises(ArtifactReadError):
        engine.image_to_string(scan, OcrArgs())


def test_non_zero_exit_still_reads_artifact(engine, scan, monkeypatch):
    monkeypatch.setenv("FAKE_EXIT", "1")
    assert engine.image_to_string(scan, OcrArgs()).output_string == "hello world"


def test_malformed_box_file(engine, scan, monkeypatch):
    monkeypatch.setenv("FAKE_BOX", "A 1 2 3 4\nB 1 two 3 4\n")
    with pytest.raises(CoordinateParseError):
        engine.image_to_boxes(scan, OcrArgs())


def test_engine_timeout(engine, scan, monkeypatch):
    monkeypatch.setenv("FAKE_SLEEP", "10")
    with pytest.raises(InvocationTimeoutError):
        engine.image_to_string(scan, OcrArgs(), timeout=0.3)


def test_tsv_pass_failure_keeps_merged_output(engine, locator, scan, workdir, tmp_path, monkeypatch):
    real_get_path = locator.get_path
    reads = []

    def missing_on_third_read():
        reads.append(1)
        return str(tmp_path / "missing") if len(reads) == 3 else real_get_path()

    monkeypatch.setattr(locator, "get_path", missing_on_third_read)
    merged = engine.image_to_data(scan, OcrArgs(), tsv_pass=True)

    assert merged.output_string == "hello world"
    assert merged.column_names() == ["A", "B"]
    assert len(read_calls(workdir)) == 2


def test_location_is_read_once_per_run(engine, locator, scan, workdir, monkeypatch):
    # A location cleared after the start check must not reach the command line
    values = iter([locator.get_path()])
    monkeypatch.setattr(locator, "get_path", lambda: next(values, None))

    assert engine.image_to_string(scan, OcrArgs()).output_string == "hello world"
    assert len(read_calls(workdir)) == 1

    with pytest.raises(EngineNotInstalledError):
        engine.image_to_string(scan, OcrArgs())


def test_facade_returns_result_or_error(locator, scan, workdir):
    result = tesspipe.image_to_string(scan, locator=locator)
    assert result.ok
    assert str(result) == "hello world"

    result = tesspipe.image_to_boxes(scan, locator=locator)
    assert result.unwrap().output_dict["A"] == ["10 20 30 40"]

    result = tesspipe.image_to_data(scan, locator=locator, tsv_pass=False)
    assert result.output.output_string == "hello world"
    assert result.output.column_names() == ["A", "B"]

    result = tesspipe.image_to_string(ImageSource(), locator=locator)
    assert not result.ok
    assert isinstance(result.error, ImageNotFoundError)
    assert result.output.is_empty()
    with pytest.raises(ImageNotFoundError):
        result.unwrap()

    result = tesspipe.image_to_string(ImageSource("scan.gif.zip"), locator=locator)
    assert isinstance(result.error, ImageFormatError)


@pytest.mark.parametrize("box", ["A 1 2 3 99999999999\n", "A 1_0 2 3 4\n"])
def test_facade_reports_bad_coordinates(locator, scan, workdir, monkeypatch, box):
    monkeypatch.setenv("FAKE_BOX", box)

    result = tesspipe.image_to_boxes(scan, locator=locator)
    assert isinstance(result.error, CoordinateParseError)
    assert result.output.is_empty()

    result = tesspipe.image_to_data(scan, locator=locator, tsv_pass=False)
    assert isinstance(result.error, CoordinateParseError)


def test_facade_default_locator(fake_tesseract, scan, workdir, monkeypatch):
    from engines.ocr import locator as locator_module
    monkeypatch.setattr(tesspipe, "DEFAULT_LOCATOR", EngineLocator())

    result = tesspipe.image_to_string(scan)
    assert isinstance(result.error, EngineNotInstalledError)

    shared = EngineLocator()
    monkeypatch.setattr(tesspipe, "DEFAULT_LOCATOR", shared)
    monkeypatch.setattr(locator_module, "DEFAULT_LOCATOR", shared)
    tesspipe.set_tesseract_installed_path(str(fake_tesseract))
    assert tesspipe.get_tesseract_installed_path() == str(fake_tesseract)
    assert tesspipe.check_if_installed()
    assert tesspipe.get_tesseract_version().startswith("tesseract 5.3.0")
    assert tesspipe.image_to_string(scan).output.output_string == "hello world"


def test_pipeline_from_config_file(fake_tesseract, workdir, tmp_path):
    config_path = tmp_path / "config.json"
    config_path.write_text(
        '{"ocr_engines": {"tesseract": {"binary_path": "%s", "psm": "6"}},'
        ' "processing": {"tsv_pass": false}}' % fake_tesseract
    )
    pipeline = tesspipe.OcrPipeline(config_path)
    pipeline.initialize()

    image = Image.new("RGB", (8, 8), "white")
    output = pipeline.process_image(image, mode="data")

    assert output.output_string == "hello world"
    assert output.column_names() == ["A", "B"]
    calls = read_calls(workdir)
    assert len(calls) == 2
    assert all("--psm 6" in call for call in calls)


def test_pipeline_requires_initialize():
    pipeline = tesspipe.OcrPipeline(config=tesspipe.DEFAULT_CONFIG)
    with pytest.raises(RuntimeError):
        pipeline.process_image("scan.png")


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        tesspipe.load_config(tmp_path / "absent.json")


def test_cli_text_and_boxes(fake_tesseract, scan, workdir, capsys):
    assert tesspipe.main([scan.path, "--tesseract", str(fake_tesseract), "--quiet"]) == 0
    assert "hello world" in capsys.readouterr().out

    assert tesspipe.main([scan.path, "--mode", "boxes", "--tesseract", str(fake_tesseract), "--quiet"]) == 0
    out = capsys.readouterr().out
    assert "A 10 20 30 40" in out
    assert "B 11 21 31 41" in out


def test_cli_engine_version(fake_tesseract, workdir, capsys):
    assert tesspipe.main(["--version-engine", "--tesseract", str(fake_tesseract), "--quiet"]) == 0
    assert "tesseract 5.3.0" in capsys.readouterr().out

    with pytest.raises(SystemExit):
        tesspipe.main(["--quiet"])


def test_cli_failures(fake_tesseract, tmp_path, workdir):
    assert tesspipe.main(["notes.docx", "--tesseract", str(fake_tesseract), "--quiet"]) == 1
    assert tesspipe.main(["scan.png", "--tesseract", str(tmp_path / "missing"), "--quiet"]) == 2
    assert tesspipe.main(["scan.png", "--config", str(tmp_path / "absent.json"), "--quiet"]) == 1


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
