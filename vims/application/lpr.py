"""
LPR terminal use cases.

Plate events, uploaded frames and the camera auto-scanner all end in
AccessControlService.scan_plate. Repeated events for the same plate
and mode within a short window are answered from cache so one car in
front of the camera produces one log entry.
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, time as dtime
from typing import Any

from vims.application.checkpoint import AccessControlService
from vims.application.store import Store
from vims.core.logging import get_logger, set_correlation_id
from vims.domain.errors import ValidationError
from vims.domain.models import Location, LprLog, LprMode, LprStatus, ScanResult
from vims.domain.services import normalize_plate
from vims.infrastructure.ml.ocr import (
    CameraSource,
    OCRError,
    PlateReader,
    decode_image_bytes,
    encode_thumbnail,
)

logger = get_logger(__name__)


@dataclass
class DuplicateSuppressor:
    """
    Remembers recent plate events within a time window.

    Uses checkpoint + mode + normalized plate as the key.

    Example:
        suppressor = DuplicateSuppressor(window_seconds=5)
        key = suppressor.compute_key("WXY 1234", LprMode.ENTRY, Location.FRONT_GATE)
        if suppressor.is_duplicate(key):
            return suppressor.get_cached_response(key)
        suppressor.mark_seen(key, result)
    """

    window_seconds: float = 5
    clock: Callable[[], float] = time.monotonic
    _seen: dict[str, tuple[float, Any]] = field(default_factory=dict)

    def compute_key(self, plate: str, mode: LprMode, location: Location = Location.FRONT_GATE) -> str:
        return f"{Location(location).value}:{LprMode(mode).value}:{normalize_plate(plate)}"

    def is_duplicate(self, key: str) -> bool:
        self._cleanup_expired()
        return key in self._seen

    def get_cached_response(self, key: str) -> Any:
        entry = self._seen.get(key)
        return entry[1] if entry else None

    def mark_seen(self, key: str, response: Any = None) -> None:
        self._seen[key] = (self.clock(), response)

    def _cleanup_expired(self) -> None:
        cutoff = self.clock() - self.window_seconds
        for key in [k for k, (seen, _) in self._seen.items() if seen <= cutoff]:
            del self._seen[key]


@dataclass(frozen=True)
class PlateEventResult:
    result: ScanResult
    duplicate: bool = False


@dataclass(frozen=True)
class LprStats:
    total: int = 0
    approved: int = 0
    rejected: int = 0
    blacklisted: int = 0
    pending: int = 0
    unknown: int = 0
    avg_confidence: int = 0


def summarize(logs: list[LprLog]) -> LprStats:
    """Per-status counts; average confidence as a whole percentage."""
    if not logs:
        return LprStats()
    counts = {status: 0 for status in LprStatus}
    for log in logs:
        counts[log.status] += 1
    return LprStats(
        total=len(logs),
        approved=counts[LprStatus.APPROVED],
        rejected=counts[LprStatus.REJECTED],
        blacklisted=counts[LprStatus.BLACKLISTED],
        pending=counts[LprStatus.PENDING],
        unknown=counts[LprStatus.UNKNOWN],
        avg_confidence=round(100 * sum(log.confidence for log in logs) / len(logs)),
    )


class LprService:
    """
    Plate events, log queries and analytics for LPR terminals.
    """

    def __init__(
        self,
        store: Store,
        access: AccessControlService,
        suppressor: DuplicateSuppressor | None = None,
        plate_reader: PlateReader | None = None,
        min_plate_length: int = 3,
    ):
        self._store = store
        self._access = access
        self.suppressor = suppressor or DuplicateSuppressor()
        self.plate_reader = plate_reader
        self.min_plate_length = min_plate_length

    def handle_plate_event(
        self,
        plate: str,
        mode: LprMode,
        confidence: float = 0.0,
        thumbnail: str = "",
        vehicle_color: str | None = None,
        location: Location = Location.FRONT_GATE,
    ) -> PlateEventResult:
        """
        Evaluate one plate event unless the same plate and mode were just seen
        at this checkpoint.

        Raises:
            ValidationError: If the plate is unreadable or too short.
        """
        key_plate = normalize_plate(plate)
        if key_plate == "NONE" or len(key_plate) < self.min_plate_length:
            raise ValidationError(
                {"plate": f"Plate must have at least {self.min_plate_length} characters"}
            )

        key = self.suppressor.compute_key(key_plate, mode, location)
        if self.suppressor.is_duplicate(key):
            cached = self.suppressor.get_cached_response(key)
            logger.info(
                "lpr_duplicate_suppressed",
                plate=key_plate,
                mode=LprMode(mode).value,
                location=Location(location).value,
            )
            return PlateEventResult(result=cached, duplicate=True)

        result = self._access.scan_plate(
            key_plate,
            mode,
            location=location,
            confidence=confidence,
            thumbnail=thumbnail,
            vehicle_color=vehicle_color,
        )
        self.suppressor.mark_seen(key, result)
        return PlateEventResult(result=result)

    async def read_frame(
        self,
        image_bytes: bytes,
        mode: LprMode,
        location: Location = Location.FRONT_GATE,
    ) -> PlateEventResult | None:
        """
        Read a plate from an uploaded image and evaluate it.

        Returns:
            PlateEventResult: The decision, or None when no plate was read.
        """
        if self.plate_reader is None:
            logger.warning("lpr_frame_skipped", reason="plate_reader_not_configured")
            return None
        try:
            frame = decode_image_bytes(image_bytes)
        except OCRError as e:
            raise ValidationError({"image": str(e)}) from e

        reading = await asyncio.to_thread(self.plate_reader.read_plate, frame)
        if reading is None:
            logger.info("lpr_no_plate_read", mode=LprMode(mode).value)
            return None
        return self.handle_plate_event(
            reading.plate,
            mode,
            confidence=reading.confidence,
            thumbnail=encode_thumbnail(frame),
            location=location,
        )

    def list_logs(
        self,
        query: str | None = None,
        mode: LprMode | None = None,
        status: LprStatus | None = None,
        limit: int = 100,
    ) -> list[LprLog]:
        """Newest first; ``query`` matches plate or requestor name."""
        needle = (query or "").strip().lower()
        result = []
        for log in self._store.lpr_logs_newest_first():
            if mode is not None and log.mode != mode:
                continue
            if status is not None and log.status != status:
                continue
            if needle and needle not in log.plate.lower() and needle not in log.requestor_name.lower():
                continue
            result.append(log)
            if len(result) >= limit:
                break
        return result

    def clear_logs(self) -> int:
        return self._store.clear_lpr_logs()

    def today(self) -> date:
        return self._store.now().date()

    def _day_bounds(self, start: date, end: date) -> tuple[datetime, datetime]:
        tz = self._store.tz
        return (
            datetime.combine(start, dtime.min, tzinfo=tz),
            datetime.combine(end, dtime.max, tzinfo=tz),
        )

    def _logs_between(self, start: date, end: date, mode: LprMode | None) -> list[LprLog]:
        lo, hi = self._day_bounds(start, end)
        return [
            log
            for log in self._store.lpr_logs
            if lo <= log.timestamp <= hi and (mode is None or log.mode == mode)
        ]

    def daily_analytics(self, day: date | None = None) -> dict[LprMode, LprStats]:
        """Per-mode stats for one local calendar day (today by default)."""
        day = day or self.today()
        return {mode: summarize(self._logs_between(day, day, mode)) for mode in LprMode}

    def entry_analytics(self, start: date | None = None, end: date | None = None) -> LprStats:
        """
        Entry-gate stats over an inclusive date range (today by default).

        Raises:
            ValidationError: If the range is inverted.
        """
        today = self.today()
        start = start or today
        end = end or max(start, today)
        if end < start:
            raise ValidationError({"end": "End date must not be before start date"})
        return summarize(self._logs_between(start, end, LprMode.ENTRY))


class LprAutoScanner:
    """
    Polls a camera and feeds readable plates into LprService.

    One detection runs at a time, detections are at least ``cooldown``
    seconds apart, and the camera is released however the loop ends.

    Example:
        scanner = LprAutoScanner(service, reader, camera_factory=lambda: CameraSource("0"))
        await scanner.start()
        ...
        await scanner.stop()
    """

    def __init__(
        self,
        service: LprService,
        plate_reader: PlateReader,
        camera_factory: Callable[[], CameraSource],
        mode: LprMode = LprMode.ENTRY,
        interval: float = 1.0,
        cooldown: float = 6.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._service = service
        self._reader = plate_reader
        self._camera_factory = camera_factory
        self.mode = LprMode(mode)
        self.interval = interval
        self.cooldown = cooldown
        self._clock = clock
        self.detecting = False
        self._last_scan: float | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def ready(self) -> bool:
        """No detection in flight and the cooldown has passed."""
        if self.detecting:
            return False
        return self._last_scan is None or self._clock() - self._last_scan > self.cooldown

    async def detect_once(self, camera: CameraSource) -> PlateEventResult | None:
        if not self.ready():
            return None
        self.detecting = True
        self._last_scan = self._clock()
        set_correlation_id()
        try:
            frame = await asyncio.to_thread(camera.read)
            if frame is None:
                logger.warning("lpr_frame_unavailable")
                return None
            reading = await asyncio.to_thread(self._reader.read_plate, frame)
            if reading is None:
                return None
            try:
                return self._service.handle_plate_event(
                    reading.plate,
                    self.mode,
                    confidence=reading.confidence,
                    thumbnail=encode_thumbnail(frame),
                )
            except ValidationError as e:
                logger.info("lpr_reading_rejected", plate=reading.plate, errors=e.errors)
                return None
        finally:
            self.detecting = False

    async def run(self) -> None:
        try:
            camera = await asyncio.to_thread(self._open_camera)
        except OCRError as e:
            logger.error("lpr_camera_unavailable", error=str(e))
            return
        logger.info("lpr_auto_scan_started", mode=self.mode.value, cooldown=self.cooldown)
        try:
            while True:
                await asyncio.sleep(self.interval)
                try:
                    await self.detect_once(camera)
                except Exception as e:
                    logger.error("lpr_auto_scan_failed", error=str(e), exc_info=True)
        finally:
            camera.release()
            logger.info("lpr_camera_released")

    def _open_camera(self) -> CameraSource:
        return self._camera_factory().__enter__()

    async def start(self) -> None:
        if not self.running:
            self._task = asyncio.create_task(self.run(), name="lpr-auto-scan")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
