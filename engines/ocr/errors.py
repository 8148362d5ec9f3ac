"""
Error kinds for Tesseract invocations.

Every failure of the pipeline maps to one subclass of TesseractError so callers
can branch on the cause instead of inspecting an empty result.
"""


class TesseractError(RuntimeError):
    """Base class for all pipeline failures."""


class EngineNotInstalledError(TesseractError):
    """The configured engine location could not be started."""


class ImageNotFoundError(TesseractError):
    """Neither an image path nor a non-empty pixel buffer was supplied."""


class ImageFormatError(TesseractError):
    """The image path has a missing or unrecognized file extension."""


class ArtifactReadError(TesseractError):
    """The result file was missing or unreadable after the engine exited."""


class CoordinateParseError(TesseractError):
    """A box file line held a coordinate that is not an integer."""


class InvocationError(TesseractError):
    """The engine process could not be spawned or did not finish."""


class InvocationTimeoutError(InvocationError):
    """The engine process ran past its deadline and was killed."""


class InvocationCancelledError(InvocationError):
    """The caller cancelled the invocation and the engine process was killed."""

