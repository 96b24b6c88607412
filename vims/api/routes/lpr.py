"""
LPR terminal API routes.

Plate events from terminals (API key or LPR_READER token), frame
uploads read with OCR, and the LPR log and analytics views.
"""

from datetime import date, datetime
from typing import Annotated

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile, status
from pydantic import BaseModel, Field

from vims.api.deps import AdminUser, Lpr, LprPrincipal, RateLimited
from vims.api.routes.checkpoints import ScanResponse, to_scan_response
from vims.application.lpr import LprStats, PlateEventResult
from vims.core.logging import get_logger
from vims.domain.models import Location, LprMode, LprStatus, VipType

logger = get_logger(__name__)

router = APIRouter(prefix="/lpr", tags=["lpr"])


class PlateEventRequest(BaseModel):
    """Plate read by a terminal with its pre-selected gate mode."""

    plate: str = Field(..., min_length=1, max_length=20, examples=["WXY 1234"])
    mode: LprMode
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    thumbnail: str = Field(default="", description="JPEG data URL of the frame")
    vehicle_color: str | None = None
    location: Location = Location.FRONT_GATE


class FrameResponse(BaseModel):
    plate_read: bool
    event: ScanResponse | None = None


class LprLogEntry(BaseModel):
    """Response model for an LPR event."""

    id: str
    plate: str
    status: LprStatus
    mode: LprMode
    timestamp: datetime
    confidence: float
    thumbnail: str
    vehicle_color: str | None
    visitor_id: str | None
    is_vip: bool
    vip_type: VipType | None
    designation: str | None
    requestor_name: str
    phone_number: str


class LprLogListResponse(BaseModel):
    logs: list[LprLogEntry]
    count: int


class LprStatsResponse(BaseModel):
    total: int
    approved: int
    rejected: int
    blacklisted: int
    pending: int
    unknown: int
    avg_confidence: int = Field(description="Average confidence in percent")


class DailyAnalyticsResponse(BaseModel):
    day: date
    entry: LprStatsResponse
    exit: LprStatsResponse


class ClearLogsResponse(BaseModel):
    deleted: int


def _stats(stats: LprStats) -> LprStatsResponse:
    return LprStatsResponse.model_validate(stats, from_attributes=True)


def _event(outcome: PlateEventResult) -> ScanResponse:
    return to_scan_response(outcome.result, duplicate=outcome.duplicate)


@router.post(
    "/events",
    response_model=ScanResponse,
    summary="Submit a plate event",
    responses={
        401: {"description": "Invalid API key or token"},
        422: {"description": "Unreadable plate"},
        429: {"description": "Rate limit exceeded"},
    },
)
async def plate_event(
    request: PlateEventRequest,
    lpr: Lpr,
    principal: LprPrincipal,
    _: RateLimited,
) -> ScanResponse:
    """
    Evaluate one plate read.

    The same plate and mode within the duplicate window return the
    earlier decision with ``duplicate: true`` and write nothing.
    """
    outcome = lpr.handle_plate_event(
        request.plate,
        request.mode,
        confidence=request.confidence,
        thumbnail=request.thumbnail,
        vehicle_color=request.vehicle_color,
        location=request.location,
    )
    logger.debug("plate_event_handled", principal=principal.username, duplicate=outcome.duplicate)
    return _event(outcome)


@router.post(
    "/frames",
    response_model=FrameResponse,
    summary="Read a plate from a camera frame",
)
async def plate_frame(
    image: Annotated[UploadFile, File(description="Camera image containing a vehicle plate")],
    mode: Annotated[LprMode, Form(description="Gate mode")],
    lpr: Lpr,
    _: LprPrincipal,
    __: RateLimited,
) -> FrameResponse:
    if not image.content_type or not image.content_type.startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file type. Please upload an image.",
        )
    image_bytes = await image.read()
    if len(image_bytes) == 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Empty image file",
        )

    outcome = await lpr.read_frame(image_bytes, mode)
    if outcome is None:
        return FrameResponse(plate_read=False)
    return FrameResponse(plate_read=True, event=_event(outcome))


@router.get("/logs", response_model=LprLogListResponse, summary="List LPR events")
async def list_lpr_logs(
    lpr: Lpr,
    _: LprPrincipal,
    q: str | None = Query(None, description="Matches plate or requestor name"),
    mode: LprMode | None = None,
    status_filter: LprStatus | None = Query(None, alias="status"),
    limit: int = Query(default=100, ge=1, le=500),
) -> LprLogListResponse:
    logs = lpr.list_logs(query=q, mode=mode, status=status_filter, limit=limit)
    return LprLogListResponse(
        logs=[LprLogEntry.model_validate(log, from_attributes=True) for log in logs],
        count=len(logs),
    )


@router.delete("/logs", response_model=ClearLogsResponse, summary="Clear LPR events")
async def clear_lpr_logs(lpr: Lpr, user: AdminUser) -> ClearLogsResponse:
    deleted = lpr.clear_logs()
    logger.warning("lpr_logs_cleared_by_user", username=user.username, deleted=deleted)
    return ClearLogsResponse(deleted=deleted)


@router.get(
    "/analytics/daily",
    response_model=DailyAnalyticsResponse,
    summary="Per-mode LPR stats for one day",
)
async def daily_analytics(
    lpr: Lpr,
    _: LprPrincipal,
    day: date | None = None,
) -> DailyAnalyticsResponse:
    stats = lpr.daily_analytics(day)
    return DailyAnalyticsResponse(
        day=day or lpr.today(),
        entry=_stats(stats[LprMode.ENTRY]),
        exit=_stats(stats[LprMode.EXIT]),
    )


@router.get(
    "/analytics/entry",
    response_model=LprStatsResponse,
    summary="Entry-gate LPR stats over a date range",
)
async def entry_analytics(
    lpr: Lpr,
    _: AdminUser,
    start: date | None = None,
    end: date | None = None,
) -> LprStatsResponse:
    return _stats(lpr.entry_analytics(start, end))
