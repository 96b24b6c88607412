"""
Guard console API routes.

QR scans at the front gate and the elevator, and manual gate release.
"""

from datetime import datetime

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from vims.api.deps import AccessControl, AdminUser
from vims.domain.models import (
    AccessAction,
    Decision,
    Location,
    LprMode,
    LprStatus,
    ScanMethod,
    ScanOutcome,
    ScanResult,
    Vip,
    VisitorMatch,
)

router = APIRouter(prefix="/checkpoints", tags=["checkpoints"])


class ScanRequest(BaseModel):
    code: str = Field(..., min_length=1, examples=["48213"])
    location: Location = Location.FRONT_GATE


class OverrideRequest(BaseModel):
    reason: str = Field(..., max_length=500, examples=["Delivery van, driver without pass"])
    location: Location = Location.FRONT_GATE


class AccessLogEntry(BaseModel):
    """Response model for an access log entry."""

    id: str
    visitor_id: str
    visitor_name: str
    action: AccessAction
    location: Location
    method: ScanMethod
    timestamp: datetime
    details: str | None = None


class ScanResponse(BaseModel):
    """Decision shown on the guard console or LPR terminal."""

    decision: Decision
    allowed: bool
    reason: str
    match: str = Field(description="BLACKLISTED, VIP, VISITOR or UNKNOWN")
    action: AccessAction
    subject_id: str
    subject_name: str
    qr_type: str | None = None
    lpr_status: LprStatus
    scan_outcome: ScanOutcome
    timestamp: datetime
    plate: str | None = None
    mode: LprMode | None = None
    duplicate: bool = False


def to_scan_response(result: ScanResult, duplicate: bool = False) -> ScanResponse:
    log = result.access_log
    match = result.match
    qr_type = None
    if isinstance(match, VisitorMatch):
        qr_type = match.record.qr_type.value
    elif isinstance(match, Vip):
        qr_type = match.record.vip_type.value
    return ScanResponse(
        decision=result.decision.decision,
        allowed=result.allowed,
        reason=result.decision.reason,
        match=match.tag,
        action=log.action,
        subject_id=log.visitor_id,
        subject_name=log.visitor_name,
        qr_type=qr_type,
        lpr_status=result.decision.lpr_status,
        scan_outcome=result.decision.scan_outcome,
        timestamp=log.timestamp,
        plate=result.lpr_log.plate if result.lpr_log else None,
        mode=result.lpr_log.mode if result.lpr_log else None,
        duplicate=duplicate,
    )


@router.post(
    "/scan",
    response_model=ScanResponse,
    summary="Scan a visitor pass",
    description="Allowed scans toggle the visitor between ENTRY and EXIT. Admin only.",
)
async def scan_pass(
    request: ScanRequest,
    access: AccessControl,
    _: AdminUser,
) -> ScanResponse:
    return to_scan_response(access.scan_qr(request.code, request.location))


@router.post(
    "/override",
    response_model=AccessLogEntry,
    status_code=status.HTTP_201_CREATED,
    summary="Manual gate release",
)
async def manual_override(
    request: OverrideRequest,
    access: AccessControl,
    user: AdminUser,
) -> AccessLogEntry:
    """Open the gate by hand. A reason is required and the release is logged."""
    log = access.manual_override(request.reason, request.location, actor=user.username)
    return AccessLogEntry.model_validate(log, from_attributes=True)
