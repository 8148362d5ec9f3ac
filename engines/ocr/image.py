"""
Image inputs for Tesseract invocations.

An ImageSource is either a path to an image file the engine can read, or an
in-memory (height, width, channel) pixel buffer. A buffer is written to disk
as a PNG before the engine runs, since the engine only reads files.
"""

import os
from typing import Optional, Union

import numpy as np
from PIL import Image

from utilities import Print
from .errors import ImageFormatError, ImageNotFoundError

FORMATS = ("JPEG", "JPG", "PNG", "PBM", "PGM", "PPM", "TIFF", "BMP", "GIF", "WEBP")

MATERIALIZED_NAME = "ndarray_converted"


class ImageSource:
    """
    Path or pixel buffer handed to the engine.

    Attributes:
        path: Image file path, '' when the buffer should be used
        ndarray: uint8 array shaped (height, width, channels), may be empty
    """

    def __init__(self, path: Union[str, os.PathLike] = "", ndarray: Optional[np.ndarray] = None):
        self.path = str(path) if path else ""
        if ndarray is None:
            ndarray = np.zeros((0, 0, 0), dtype=np.uint8)
        ndarray = np.asarray(ndarray)
        if ndarray.size and ndarray.ndim != 3:
            raise ValueError(
                f"Pixel buffer must be 3-dimensional (height, width, channels), got shape {ndarray.shape}"
            )
        self.ndarray = ndarray

    @classmethod
    def from_pil(cls, image: Image.Image) -> "ImageSource":
        """Wrap a Pillow image as a pixel buffer."""
        array = np.asarray(image)
        if array.ndim == 2:
            array = array[:, :, np.newaxis]
        return cls(ndarray=array)

    def size_of_ndarray(self):
        return self.ndarray.shape

    def __str__(self) -> str:
        return self.path

    def __repr__(self) -> str:
        return f"ImageSource(path={self.path!r}, ndarray_shape={self.ndarray.shape})"


def check_image_format(image: ImageSource) -> bool:
    """True when the text after the last '.' of the path is a known format."""
    if "." not in image.path:
        return False
    extension = image.path.rsplit(".", 1)[1]
    return extension.upper() in FORMATS


def has_usable_buffer(image: ImageSource) -> bool:
    return image.ndarray.size > 0


def validate_image(image: ImageSource) -> None:
    """
    Check that the image can be handed to the engine.

    Raises:
        ImageNotFoundError: If there is neither a path nor a non-empty buffer
        ImageFormatError: If a path is given with an unrecognized extension
    """
    if not image.path:
        if not has_usable_buffer(image):
            raise ImageNotFoundError("No image path given and the pixel buffer is empty")
        return
    if not check_image_format(image):
        raise ImageFormatError(
            f"Unsupported image format: '{image.path}'. "
            f"Supported formats: {', '.join(FORMATS)}"
        )


def ndarray_to_image(ndarray: np.ndarray) -> Image.Image:
    """
    Convert a (height, width, channels) buffer into an RGB Pillow image.

    Raises:
        ValueError/TypeError: If Pillow cannot interpret the buffer
    """
    array = np.ascontiguousarray(ndarray, dtype=np.uint8)
    if array.shape[2] == 1:
        array = array[:, :, 0]
    image = Image.fromarray(array)

    # Flatten transparency onto white, Tesseract prefers plain RGB
    if image.mode in ('RGBA', 'LA', 'P'):
        background = Image.new('RGB', image.size, (255, 255, 255))
        if image.mode == 'P':
            image = image.convert('RGBA')
        background.paste(image, mask=image.split()[-1])
        image = background

    return image.convert('RGB')


def materialized_filename(invocation_id: Optional[str] = None) -> str:
    if invocation_id:
        return f"{MATERIALIZED_NAME}_{invocation_id}.png"
    return f"{MATERIALIZED_NAME}.png"


def prepare_image_arg(image: ImageSource, invocation_id: Optional[str] = None) -> str:
    """
    Return the image argument for the engine command line.

    A buffer without a path is saved as a PNG in the current working directory,
    overwriting any earlier file of the same name. If saving fails, the failure
    is logged and the (empty) path string is used as is.

    Call validate_image() first.
    """
    if image.path:
        return image.path.replace('"', '')

    new_path = os.path.join(os.getcwd(), materialized_filename(invocation_id))
    try:
        ndarray_to_image(image.ndarray).save(new_path, format='PNG')
    except (OSError, ValueError, TypeError) as e:
        Print("FAILURE", f"Error while saving image: {e}")
        return image.path

    height, width, _ = image.size_of_ndarray()
    Print("DEBUG", f"Image saved: {new_path} ({width}x{height} px)")
    return new_path
