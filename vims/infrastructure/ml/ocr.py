"""
OCR for ID cards and license plates.

EasyOCR reads text lines from an image; the readers on top turn those
lines into visitor fields or a normalized plate. Reader failures are
logged and surface as empty results, never as exceptions.
"""

import base64
import re
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass

import cv2
import numpy as np

from vims.core.logging import get_logger
from vims.domain.services import normalize_plate

logger = get_logger(__name__)

IC_PATTERN = re.compile(r"(\d{6}[-\s]?\d{2}[-\s]?\d{4})")
NAME_LINE = re.compile(r"^name[:\s]*", re.IGNORECASE)
NAME_CANDIDATE = re.compile(r"^[A-Z][A-Z\s'.-]{3,}$", re.IGNORECASE)


class OCRError(Exception):
    """Raised when OCR extraction fails."""

    pass


@dataclass(frozen=True)
class TextLine:
    text: str
    confidence: float


@dataclass(frozen=True)
class IdFields:
    """Fields read from an identity card photo."""

    name: str | None = None
    ic_number: str | None = None
    raw_text: str = ""


@dataclass(frozen=True)
class PlateReading:
    plate: str
    confidence: float


class OCREngine(ABC):
    """Text extraction strategy."""

    @abstractmethod
    def read_lines(self, image: np.ndarray) -> list[TextLine]:
        """
        Extract text lines from an image.

        Raises:
            OCRError: If extraction fails.
        """


class ImagePreprocessor:
    """
    Prepares low-contrast crops for a second OCR pass.

    Resizes to a fixed height, converts to grayscale, denoises and
    applies adaptive thresholding.
    """

    def __init__(self, target_height: int = 100, denoise_strength: int = 10):
        self.target_height = target_height
        self.denoise_strength = denoise_strength

    def preprocess(self, image: np.ndarray) -> np.ndarray:
        processed = self._resize(image)
        if len(processed.shape) == 3:
            processed = cv2.cvtColor(processed, cv2.COLOR_BGR2GRAY)
        processed = cv2.fastNlMeansDenoising(processed, h=self.denoise_strength)
        return cv2.adaptiveThreshold(
            processed,
            255,
            cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
            cv2.THRESH_BINARY,
            11,
            2,
        )

    def _resize(self, image: np.ndarray) -> np.ndarray:
        height, width = image.shape[:2]
        if height == 0:
            return image
        scale = self.target_height / height
        return cv2.resize(
            image,
            (int(width * scale), self.target_height),
            interpolation=cv2.INTER_CUBIC,
        )


class EasyOCREngine(OCREngine):
    """
    OCR engine using EasyOCR.

    The reader is loaded once per process on first use and shared by
    every engine instance.

    Example:
        engine = EasyOCREngine(languages=["en"])
        lines = engine.read_lines(image)
    """

    _reader = None
    _lock = threading.Lock()

    def __init__(self, languages: list[str] | None = None, gpu: bool = False):
        self.languages = languages or ["en"]
        self.gpu = gpu
        self.preprocessor = ImagePreprocessor()

    def _get_reader(self):
        if EasyOCREngine._reader is None:
            with EasyOCREngine._lock:
                if EasyOCREngine._reader is None:
                    import easyocr

                    EasyOCREngine._reader = easyocr.Reader(self.languages, gpu=self.gpu)
                    logger.info("easyocr_initialized", languages=self.languages, gpu=self.gpu)
        return EasyOCREngine._reader

    def read_lines(self, image: np.ndarray) -> list[TextLine]:
        try:
            reader = self._get_reader()
            results = reader.readtext(image)

            # Retry on a cleaned-up image when the raw pass is weak
            if not results or max(r[2] for r in results) < 0.5:
                processed = reader.readtext(self.preprocessor.preprocess(image))
                if max((r[2] for r in processed), default=0) > max(
                    (r[2] for r in results), default=0
                ):
                    results = processed
        except Exception as e:
            logger.error("ocr_failed", error=str(e))
            raise OCRError(f"OCR extraction failed: {e}") from e

        lines = [TextLine(text=text, confidence=float(conf)) for _, text, conf in results]
        logger.debug("ocr_complete", lines=len(lines))
        return lines


def decode_data_url(data_url: str) -> np.ndarray:
    """
    Decode a ``data:image/...;base64,`` URL (or bare base64) to a BGR image.

    Raises:
        OCRError: If the payload is not a decodable image.
    """
    encoded = data_url.split(",", 1)[1] if data_url.startswith("data:") else data_url
    try:
        raw = base64.b64decode(encoded, validate=False)
    except ValueError as e:
        raise OCRError("Invalid base64 image payload") from e
    return decode_image_bytes(raw)


def decode_image_bytes(raw: bytes) -> np.ndarray:
    image = cv2.imdecode(np.frombuffer(raw, dtype=np.uint8), cv2.IMREAD_COLOR)
    if image is None:
        raise OCRError("Payload is not a decodable image")
    return image


def encode_thumbnail(frame: np.ndarray, max_width: int = 320) -> str:
    """JPEG data URL of a downscaled frame, for LPR log thumbnails."""
    height, width = frame.shape[:2]
    if width > max_width:
        frame = cv2.resize(frame, (max_width, int(height * max_width / width)))
    ok, buffer = cv2.imencode(".jpg", frame)
    if not ok:
        return ""
    return "data:image/jpeg;base64," + base64.b64encode(buffer.tobytes()).decode("ascii")


def extract_ic_number(text: str) -> str | None:
    match = IC_PATTERN.search(text)
    return re.sub(r"\s+", "", match.group(1)) if match else None


def extract_name(text: str) -> str | None:
    """
    Name from a ``Name:`` line, else the first line made only of letters.

    Example:
        >>> extract_name("MYKAD\\nName: Siti Aminah\\n900101-14-5678")
        'Siti Aminah'
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    for line in lines:
        if re.match(r"^name[:\s]", line, re.IGNORECASE):
            return NAME_LINE.sub("", line).strip() or None
    for line in lines:
        if NAME_CANDIDATE.match(line) and not re.search(r"\d", line):
            return line
    return None


class IdCardReader:
    """Reads name and IC number from an identity card photo."""

    def __init__(self, engine: OCREngine):
        self._engine = engine

    def extract_id_fields(self, data_url: str) -> IdFields:
        """Never raises; any failure yields an empty result."""
        try:
            image = decode_data_url(data_url)
            text = "\n".join(line.text for line in self._engine.read_lines(image))
        except OCRError as e:
            logger.warning("id_ocr_failed", error=str(e))
            return IdFields()
        fields = IdFields(
            name=extract_name(text),
            ic_number=extract_ic_number(text),
            raw_text=text,
        )
        logger.info(
            "id_ocr_complete",
            found_name=fields.name is not None,
            found_ic=fields.ic_number is not None,
        )
        return fields


class PlateReader:
    """
    Reads a license plate from a camera frame or uploaded image.

    All text lines are joined and normalized; readings shorter than
    ``min_length`` are discarded.
    """

    def __init__(self, engine: OCREngine, min_length: int = 3):
        self._engine = engine
        self.min_length = min_length

    def read_plate(self, frame: np.ndarray) -> PlateReading | None:
        try:
            lines = self._engine.read_lines(frame)
        except OCRError as e:
            logger.warning("plate_ocr_failed", error=str(e))
            return None
        plate = normalize_plate("".join(line.text for line in lines))
        if len(plate) < self.min_length or plate == "NONE":
            return None
        confidence = sum(line.confidence for line in lines) / len(lines)
        return PlateReading(plate=plate, confidence=round(confidence, 4))


class CameraSource:
    """
    OpenCV capture device, released on every exit path.

    Usage:
        with CameraSource("0") as camera:
            frame = camera.read()
    """

    def __init__(self, source: str):
        self.source = int(source) if source.isdigit() else source
        self._capture: cv2.VideoCapture | None = None

    def __enter__(self) -> "CameraSource":
        self._capture = cv2.VideoCapture(self.source)
        if not self._capture.isOpened():
            self.release()
            raise OCRError(f"Camera source {self.source!r} could not be opened")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def read(self) -> np.ndarray | None:
        if self._capture is None:
            return None
        ok, frame = self._capture.read()
        return frame if ok else None

    def release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
