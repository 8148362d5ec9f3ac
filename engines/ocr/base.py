"""
OCR Engine Protocol for tesspipe

Defines the contract that OCR engines must implement.
Uses Python's Protocol for structural subtyping (duck typing with type safety).
"""

import threading
from typing import Protocol, Optional

from .args import OcrArgs
from .image import ImageSource
from .output import ModelOutput


class OCREngine(Protocol):
    """
    Protocol for OCR engines driven through a command line.

    Every recognition method runs at least one full invocation: argument
    building, child process execution and artifact parsing.
    """

    def initialize(self, config: dict) -> None:
        """
        Verify the engine binary can be started.

        Raises:
            EngineNotInstalledError: If the engine cannot be started
        """
        ...

    def image_to_string(
        self,
        image: ImageSource,
        args: Optional[OcrArgs] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ModelOutput:
        """
        Recognize plain text.

        Returns:
            ModelOutput with output_string filled from the .txt artifact

        Raises:
            TesseractError: Subclass naming the failure kind
        """
        ...

    def image_to_boxes(
        self,
        image: ImageSource,
        args: Optional[OcrArgs] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ModelOutput:
        """
        Recognize per-glyph bounding boxes.

        Returns:
            ModelOutput with output_dict and output_dataframe filled from the .box artifact
        """
        ...

    def image_to_data(
        self,
        image: ImageSource,
        args: Optional[OcrArgs] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        tsv_pass: bool = True,
    ) -> ModelOutput:
        """
        Text pass plus box pass against the same image, merged into one output.
        """
        ...

    def get_version(self) -> str:
        """Engine version text, or '' when the engine is not installed."""
        ...

    @property
    def name(self) -> str:
        """
        Engine identifier for logging and debugging.
        """
        ...
