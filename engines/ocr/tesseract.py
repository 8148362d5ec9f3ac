"""
Tesseract OCR engine for tesspipe

Drives the tesseract executable through its command line. One invocation is:

1. validate the image (no child process is started for a bad image)
2. check that the located binary starts
3. write a pixel buffer to a PNG if no path was given
4. build the ordered argument list
5. run the engine and capture its streams
6. read and parse <stem>.txt or <stem>.box

Errors are raised as TesseractError subclasses and are never retried.
"""

import threading
from typing import Optional

from . import register_ocr_engine
from .args import OcrArgs, build_command_args, output_filename
from .errors import EngineNotInstalledError, TesseractError
from .image import ImageSource, prepare_image_arg, validate_image
from .locator import DEFAULT_LOCATOR, EngineLocator, can_spawn
from .output import ModelOutput, parse_box_output, parse_text_output, read_output_file
from .runner import InvocationResult, run_command, streams_to_text
from utilities import Print

# Option that makes Tesseract also write <stem>.tsv
TSV_TESSTABLE = "tessedit_create_tsv=1"


@register_ocr_engine("tesseract")
class TesseractEngineFactory:
    """Factory for creating Tesseract engine instances."""

    @staticmethod
    def create(config: dict):
        """
        Create a Tesseract engine instance.

        Args:
            config: Configuration dictionary with:
                - binary_path: Path to tesseract binary (default: shared locator)
                - location_strategy: 'explicit', 'working-directory' or 'system-default'
                - lang, dpi, psm, oem, out_filename: Default invocation options
                - timeout: Seconds before an invocation is killed (default: none)

        Returns:
            TesseractEngine instance
        """
        return TesseractEngine(config)


class TesseractEngine:
    """
    Tesseract OCR through the command line, parsed from its result files.

    Attributes:
        config: Engine configuration dictionary
        locator: Where the tesseract binary lives
        default_args: Options used when a call passes no OcrArgs
        timeout: Default per-invocation timeout in seconds
    """

    def __init__(self, config: Optional[dict] = None, locator: Optional[EngineLocator] = None):
        self.config = dict(config or {})
        if locator is None:
            if 'binary_path' in self.config or 'location_strategy' in self.config:
                locator = EngineLocator.from_config(self.config)
            else:
                locator = DEFAULT_LOCATOR
        self.locator = locator
        self.default_args = OcrArgs.from_config(self.config)
        self.timeout = self.config.get('timeout')
        self._version = None

    def initialize(self, config: Optional[dict] = None) -> None:
        """
        Verify the Tesseract binary can be started and record its version.

        Raises:
            EngineNotInstalledError: If the binary cannot be started
        """
        if not self.locator.is_installed():
            raise EngineNotInstalledError(
                f"Tesseract not found at '{self.locator.get_path()}'. "
                f"Install: brew install tesseract (macOS) or apt-get install tesseract-ocr (Linux)"
            )
        version = self.get_version()
        self._version = version.splitlines()[0] if version else None
        Print("SUCCESS", f"Found {self._version or self.locator.get_path()}")

    def get_version(self) -> str:
        """`tesseract --version` output (stdout, or stderr if stdout is empty)."""
        if not self.locator.is_installed():
            return ""
        result = run_command([self.locator.get_path(), '--version'], timeout=self.timeout)
        return streams_to_text(result)

    def _resolve_args(self, args: Optional[OcrArgs]) -> OcrArgs:
        return (args if args is not None else self.default_args).clone()

    def run_tesseract(
        self,
        image: ImageSource,
        args: OcrArgs,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ModelOutput:
        """
        One full invocation in the mode args.boxfile selects.

        Raises:
            ImageNotFoundError, ImageFormatError: Before any process is started
            EngineNotInstalledError: If the located binary cannot be started
            InvocationError: If the engine cannot be run to completion
            ArtifactReadError, CoordinateParseError: While parsing the result file
        """
        result = self._execute(image, args, timeout, cancel_event)
        info = streams_to_text(result)

        out_file = output_filename(args)
        raw = read_output_file(out_file)
        Print("DEBUG", f"Read {len(raw)} bytes from {out_file}")

        if args.boxfile:
            return parse_box_output(raw, info)
        return parse_text_output(raw, info)

    def _execute(
        self,
        image: ImageSource,
        args: OcrArgs,
        timeout: Optional[float],
        cancel_event: Optional[threading.Event],
    ) -> InvocationResult:
        """
        Validate, check the engine, materialize and run. No parsing.

        The location is read once; the binary that passed the start check is
        the one that runs.

        Raises:
            ImageNotFoundError, ImageFormatError: Before any process is started
            EngineNotInstalledError: If the located binary cannot be started
            InvocationError: If the engine cannot be run to completion
        """
        validate_image(image)

        path = self.locator.get_path()
        if not can_spawn(path):
            raise EngineNotInstalledError(f"Tesseract not found at '{path}'")

        image_arg = prepare_image_arg(image, args.invocation_id)
        Print("DEBUG", f"The image arg is: {image_arg}")

        cmd = [path, *build_command_args(image_arg, args)]
        return run_command(
            cmd,
            timeout=timeout if timeout is not None else self.timeout,
            cancel_event=cancel_event,
        )

    def image_to_string(
        self,
        image: ImageSource,
        args: Optional[OcrArgs] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ModelOutput:
        """
        Recognize plain text.

        Args:
            image: Path or pixel buffer to recognize
            args: Invocation options (default: this engine's default_args)
            timeout: Seconds before the engine is killed (default: self.timeout)
            cancel_event: Set from another thread to kill the engine

        Returns:
            ModelOutput with output_string, output_bytes and output_info set

        Raises:
            TesseractError: Subclass naming the failure kind
        """
        return self._logged(self.run_tesseract, image, self._resolve_args(args), timeout, cancel_event)

    def image_to_boxes(
        self,
        image: ImageSource,
        args: Optional[OcrArgs] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ModelOutput:
        """
        Recognize per-glyph boxes. Box mode is forced on a copy of args.

        Args:
            image: Path or pixel buffer to recognize
            args: Invocation options (default: this engine's default_args)
            timeout: Seconds before the engine is killed (default: self.timeout)
            cancel_event: Set from another thread to kill the engine

        Returns:
            ModelOutput with output_dict and output_dataframe filled from <stem>.box

        Raises:
            TesseractError: Subclass naming the failure kind
            CoordinateParseError: If any box line is malformed
        """
        box_args = self._resolve_args(args).clone(boxfile=True)
        return self._logged(self.run_tesseract, image, box_args, timeout, cancel_event)

    def image_to_data(
        self,
        image: ImageSource,
        args: Optional[OcrArgs] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        tsv_pass: bool = True,
    ) -> ModelOutput:
        """
        Text pass and box pass against the same image, merged.

        The merged output carries info, bytes and string from the text pass and
        the mapping and columns from the box pass. With tsv_pass a third run
        asks Tesseract for its TSV table; that file is not parsed, and a failure
        of that run is only logged.

        Raises:
            TesseractError: If the text pass or the box pass fails
        """
        text_args = self._resolve_args(args).clone(boxfile=False)
        str_out = self.image_to_string(image, text_args, timeout, cancel_event)
        box_out = self.image_to_boxes(image, text_args, timeout, cancel_event)

        merged = ModelOutput(
            output_info=str_out.output_info,
            output_bytes=str_out.output_bytes,
            output_string=str_out.output_string,
            output_dict=box_out.output_dict,
            output_dataframe=box_out.output_dataframe,
        )

        if tsv_pass:
            tsv_args = text_args.clone()
            tsv_args.config["-c"] = TSV_TESSTABLE
            try:
                self._execute(image, tsv_args, timeout, cancel_event)
            except TesseractError as e:
                Print("WARNING", f"TSV pass failed: {e}")

        return merged

    def _logged(self, step, image, args, timeout, cancel_event) -> ModelOutput:
        mode = "box" if args.boxfile else "text"
        Print("STARTING", f"Tesseract {mode} pass on {image!r}")
        try:
            output = step(image, args, timeout, cancel_event)
        except TesseractError as e:
            Print("FAILURE", f"{type(e).__name__}: {e}")
            raise
        Print("COMPLETED", f"Tesseract {mode} pass: {len(output.output_string)} characters")
        return output

    @property
    def name(self) -> str:
        """Engine identifier."""
        return "tesseract"

    @property
    def version(self) -> Optional[str]:
        """First line of the Tesseract version text, set by initialize()."""
        return self._version
