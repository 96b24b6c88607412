"""ML infrastructure package."""

from vims.infrastructure.ml.ocr import (
    CameraSource,
    EasyOCREngine,
    IdCardReader,
    IdFields,
    OCREngine,
    OCRError,
    PlateReader,
    PlateReading,
    TextLine,
)

__all__ = [
    # OCR engines
    "OCREngine",
    "EasyOCREngine",
    "OCRError",
    "TextLine",
    # Readers
    "IdCardReader",
    "IdFields",
    "PlateReader",
    "PlateReading",
    # Camera
    "CameraSource",
]
