"""
Engine lookup by name for tesspipe.

Only "tesseract" is registered. OcrPipeline.initialize() resolves the name
from its config section through get_ocr_engine(), so a config file or the CLI
names the engine instead of importing TesseractEngine directly:

    engine = get_ocr_engine("tesseract", {"binary_path": "/usr/bin/tesseract", "psm": "6"})
    engine.initialize({})
"""

from typing import Dict, Callable
from .base import OCREngine

# Engine name -> factory taking the engine's config section
OCR_REGISTRY: Dict[str, Callable[[dict], OCREngine]] = {}


def register_ocr_engine(name: str):
    """Class decorator: file factory_class.create under name."""
    def decorator(factory_class):
        OCR_REGISTRY[name] = factory_class.create
        return factory_class
    return decorator


def get_ocr_engine(name: str, config: dict) -> OCREngine:
    """
    Build the named engine from its config section.

    The engine is not yet checked; call initialize() to confirm the binary
    starts and to record its version.

    Raises:
        ValueError: If no engine is registered under name
    """
    if name not in OCR_REGISTRY:
        available = ', '.join(OCR_REGISTRY.keys()) if OCR_REGISTRY else 'none'
        raise ValueError(
            f"Unknown OCR engine: '{name}'. "
            f"Available engines: {available}"
        )
    return OCR_REGISTRY[name](config)


# The tesseract module registers itself on import
from . import tesseract  # noqa: E402,F401
