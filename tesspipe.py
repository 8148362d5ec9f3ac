#!/usr/bin/env python3
"""
tesspipe: Tesseract command-line orchestration.

Drives the tesseract executable and returns its output as structured data:
plain text, a character -> box mapping, and one integer column per glyph.

Facade functions never raise for pipeline failures. They return an OcrResult
whose output is always a valid ModelOutput (empty on failure) and whose error
names the failure kind:

    from tesspipe import image_to_string, set_tesseract_installed_path
    from engines.ocr.image import ImageSource

    set_tesseract_installed_path("/usr/bin/tesseract")
    result = image_to_string(ImageSource("scan.png"))
    if result.ok:
        print(result.output.output_string)

For config-file driven use:

    pipeline = OcrPipeline(Path("config/config.json"))
    pipeline.initialize()
    output = pipeline.process_image(Path("scan.png"), mode="data")

Or from command line:
    python tesspipe.py scan.png --mode boxes --lang deu
"""

import copy
import json
import threading
from pathlib import Path
from typing import Optional

from engines.ocr import get_ocr_engine
from engines.ocr.args import OcrArgs
from engines.ocr.errors import ImageFormatError, ImageNotFoundError, TesseractError
from engines.ocr.image import ImageSource
from engines.ocr.locator import (
    DEFAULT_LOCATOR,
    EngineLocator,
    check_if_installed,
    get_tesseract_installed_path,
    set_tesseract_installed_path,
)
from engines.ocr.output import ModelOutput, OcrResult
from engines.ocr.tesseract import TesseractEngine
from utilities import Print, CPU_and_Mem_usage, set_quiet

__all__ = [
    'OcrPipeline',
    'check_if_installed',
    'get_tesseract_installed_path',
    'get_tesseract_version',
    'image_to_boxes',
    'image_to_data',
    'image_to_string',
    'set_tesseract_installed_path',
]

__version__ = "0.1.0"

DEFAULT_CONFIG = {
    "version": __version__,
    "ocr_engines": {
        "tesseract": {
            "location_strategy": "system-default",
            "lang": "eng",
            "dpi": 150,
            "psm": "3",
            "oem": "3",
            "out_filename": "out",
        }
    },
    "processing": {
        "timeout": None,
        "unique_filenames": False,
        "tsv_pass": True,
    },
}

MODES = ("text", "boxes", "data")


def _engine(locator: Optional[EngineLocator]) -> TesseractEngine:
    return TesseractEngine({}, locator=locator or DEFAULT_LOCATOR)


def _as_result(call) -> OcrResult:
    try:
        return OcrResult(output=call())
    except TesseractError as e:
        return OcrResult(output=ModelOutput(), error=e)


def get_tesseract_version(locator: Optional[EngineLocator] = None) -> str:
    """Version text of the located engine, '' when it is not installed."""
    return _engine(locator).get_version()


def image_to_string(
    image: ImageSource,
    args: Optional[OcrArgs] = None,
    locator: Optional[EngineLocator] = None,
    timeout: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
) -> OcrResult:
    """Plain text recognition."""
    engine = _engine(locator)
    return _as_result(lambda: engine.image_to_string(image, args, timeout, cancel_event))


def image_to_boxes(
    image: ImageSource,
    args: Optional[OcrArgs] = None,
    locator: Optional[EngineLocator] = None,
    timeout: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
) -> OcrResult:
    """Per-glyph box recognition; box mode is forced regardless of args.boxfile."""
    engine = _engine(locator)
    return _as_result(lambda: engine.image_to_boxes(image, args, timeout, cancel_event))


def image_to_data(
    image: ImageSource,
    args: Optional[OcrArgs] = None,
    locator: Optional[EngineLocator] = None,
    timeout: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
    tsv_pass: bool = True,
) -> OcrResult:
    """Text pass and box pass merged into one output."""
    engine = _engine(locator)
    return _as_result(
        lambda: engine.image_to_data(image, args, timeout, cancel_event, tsv_pass=tsv_pass)
    )


def load_config(config_path: Optional[Path] = None) -> dict:
    """
    Load configuration, layered over the built-in defaults.

    Args:
        config_path: Path to a JSON config. If None, config/config.json next to
            this file is used when present.

    Raises:
        FileNotFoundError: If an explicitly given config_path does not exist
    """
    explicit = config_path is not None
    if config_path is None:
        config_path = Path(__file__).parent / "config" / "config.json"

    config = copy.deepcopy(DEFAULT_CONFIG)

    if not config_path.exists():
        if explicit:
            raise FileNotFoundError(
                f"Configuration file not found: {config_path}\n"
                f"Create config/config.json or specify path with config_path parameter."
            )
        Print("DEBUG", "No configuration file, using built-in defaults")
        return config

    with open(config_path) as f:
        loaded = json.load(f)

    for section, values in loaded.items():
        if isinstance(values, dict) and isinstance(config.get(section), dict):
            for key, value in values.items():
                if isinstance(value, dict) and isinstance(config[section].get(key), dict):
                    config[section][key] = {**config[section][key], **value}
                else:
                    config[section][key] = value
        else:
            config[section] = values

    # An explicit binary path wins over the default strategy
    tesseract_config = config['ocr_engines'].get('tesseract', {})
    if 'binary_path' in loaded.get('ocr_engines', {}).get('tesseract', {}):
        tesseract_config['location_strategy'] = 'explicit'

    Print("DEBUG", f"Loaded configuration v{config.get('version', 'unknown')}")
    return config


class OcrPipeline:
    """
    Config-file driven orchestrator around one OCR engine.

    Attributes:
        config: Loaded configuration dictionary
        ocr_engine: Initialized OCR engine instance
    """

    def __init__(self, config_path: Optional[Path] = None, config: Optional[dict] = None):
        self.config = config if config is not None else load_config(config_path)
        self.ocr_engine = None
        self._initialized = False

    def initialize(self, ocr_engine_name: str = "tesseract") -> None:
        """
        Create and verify the OCR engine. Must be called before process_image().

        Raises:
            ValueError: If the engine name is not registered
            EngineNotInstalledError: If the engine binary cannot be started
        """
        Print("STARTING", f"Initializing tesspipe v{self.config.get('version', __version__)}")

        ocr_config = dict(self.config['ocr_engines'].get(ocr_engine_name, {}))
        ocr_config.setdefault('timeout', self.config['processing'].get('timeout'))
        self.ocr_engine = get_ocr_engine(ocr_engine_name, ocr_config)
        self.ocr_engine.initialize(ocr_config)
        Print("SUCCESS", f"OCR engine: {self.ocr_engine.name}")

        self._initialized = True

    def process_image(
        self,
        image,
        mode: str = "text",
        args: Optional[OcrArgs] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ModelOutput:
        """
        Run one recognition.

        Args:
            image: ImageSource, path, or Pillow image
            mode: 'text', 'boxes' or 'data'
            args: Invocation options (default: from config)
            cancel_event: Set from another thread to kill the engine

        Raises:
            RuntimeError: If the pipeline is not initialized
            ValueError: If the mode is unknown
            TesseractError: Subclass naming the failure kind
        """
        if not self._initialized:
            raise RuntimeError("Pipeline not initialized. Call initialize() first.")
        if mode not in MODES:
            raise ValueError(f"Unknown mode: '{mode}'. Available modes: {', '.join(MODES)}")

        if not isinstance(image, ImageSource):
            image = ImageSource(image) if isinstance(image, (str, Path)) else ImageSource.from_pil(image)

        if args is None:
            args = self.ocr_engine.default_args
        if self.config['processing'].get('unique_filenames'):
            args = args.with_unique_id()

        Print("STATE", f"Processing: {image!r} ({mode})")

        if mode == "text":
            return self.ocr_engine.image_to_string(image, args, cancel_event=cancel_event)
        if mode == "boxes":
            return self.ocr_engine.image_to_boxes(image, args, cancel_event=cancel_event)
        return self.ocr_engine.image_to_data(
            image, args,
            cancel_event=cancel_event,
            tsv_pass=self.config['processing'].get('tsv_pass', True),
        )


def _print_output(output: ModelOutput, mode: str) -> None:
    if mode in ("text", "data"):
        print(output.output_string, end="" if output.output_string.endswith("\n") else "\n")
    if mode in ("boxes", "data"):
        for column in output.output_dataframe:
            print(column.name, *column.tolist())


def main(argv=None):
    """Command-line entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description='tesspipe: run Tesseract and print text or glyph boxes',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  tesspipe scan.png
  tesspipe scan.png --mode boxes --psm 6
  tesspipe scan.png --mode data --tesseract /opt/tesseract/bin/tesseract
  tesspipe --version-engine
        """
    )

    parser.add_argument('image', type=Path, nargs='?', help='Input image file')
    parser.add_argument('--mode', choices=MODES, default='text', help='Output kind (default: text)')
    parser.add_argument('--lang', default=None, help='Tesseract language (default: from config)')
    parser.add_argument('--dpi', type=int, default=None, help='Resolution hint (default: from config)')
    parser.add_argument('--psm', default=None, help='Page segmentation mode')
    parser.add_argument('--oem', default=None, help='OCR engine mode')
    parser.add_argument('--out', default=None, help='Output file stem')
    parser.add_argument('--tesseract', default=None, help='Path to the tesseract binary')
    parser.add_argument('--timeout', type=float, default=None, help='Seconds before Tesseract is killed')
    parser.add_argument('--config', type=Path, default=None, help='Path to config.json')
    parser.add_argument('--no-tsv-pass', action='store_true', help='Skip the TSV run in data mode')
    parser.add_argument('--unique', action='store_true', help='Suffix generated files with a unique id')
    parser.add_argument('--version-engine', action='store_true', help='Print the Tesseract version and exit')
    parser.add_argument('--quiet', action='store_true', help='Only log warnings and failures')
    parser.add_argument('--verbose', action='store_true', help='Log process resource usage')

    args = parser.parse_args(argv)
    if args.image is None and not args.version_engine:
        parser.error("an image is required unless --version-engine is given")
    set_quiet(args.quiet)

    try:
        config = load_config(args.config)
        tesseract_config = config['ocr_engines'].setdefault('tesseract', {})
        processing = config['processing']

        if args.tesseract:
            tesseract_config['binary_path'] = args.tesseract
            tesseract_config['location_strategy'] = 'explicit'
        for key in ('lang', 'dpi', 'psm', 'oem'):
            if getattr(args, key) is not None:
                tesseract_config[key] = getattr(args, key)
        if args.out:
            tesseract_config['out_filename'] = args.out
        if args.timeout is not None:
            processing['timeout'] = args.timeout
        if args.no_tsv_pass:
            processing['tsv_pass'] = False
        if args.unique:
            processing['unique_filenames'] = True

        pipeline = OcrPipeline(config=config)
        pipeline.initialize()

        if args.version_engine:
            print(pipeline.ocr_engine.get_version())
            return 0

        output = pipeline.process_image(args.image, mode=args.mode)
        _print_output(output, args.mode)

        if args.verbose:
            Print("INFO", CPU_and_Mem_usage())
        return 0

    except (FileNotFoundError, ValueError, ImageNotFoundError, ImageFormatError) as e:
        Print("FAILURE", str(e))
        return 1
    except RuntimeError as e:
        Print("FAILURE", str(e))
        return 2
    except KeyboardInterrupt:
        Print("WARNING", "Interrupted by user")
        return 130


if __name__ == "__main__":
    import sys
    sys.exit(main())
