"""
Access logs API routes.

Provides read-only endpoints for viewing the checkpoint audit trail.
Admin-only access.
"""

from typing import Annotated

from fastapi import APIRouter, HTTPException, Path, Query, status
from pydantic import BaseModel

from vims.api.deps import AdminUser, Container
from vims.api.routes.checkpoints import AccessLogEntry
from vims.domain.models import AccessAction, Location, ScanMethod

router = APIRouter(prefix="/logs", tags=["logs"])


class AccessLogListResponse(BaseModel):
    """Response for listing access logs."""

    logs: list[AccessLogEntry]
    count: int
    total: int


@router.get(
    "",
    response_model=AccessLogListResponse,
    summary="List access logs",
    description="Get access logs newest first with filtering. Admin only.",
)
async def list_logs(
    services: Container,
    _: AdminUser,
    action: AccessAction | None = None,
    location: Location | None = None,
    method: ScanMethod | None = None,
    q: str | None = Query(None, description="Matches visitor id or name"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> AccessLogListResponse:
    """List access logs with optional filtering."""
    needle = (q or "").strip().lower()
    logs = [
        log
        for log in services.store.access_logs_newest_first()
        if (action is None or log.action == action)
        and (location is None or log.location == location)
        and (method is None or log.method == method)
        and (not needle or needle in log.visitor_id.lower() or needle in log.visitor_name.lower())
    ]
    page = logs[offset : offset + limit]
    return AccessLogListResponse(
        logs=[AccessLogEntry.model_validate(log, from_attributes=True) for log in page],
        count=len(page),
        total=len(logs),
    )


@router.get(
    "/{log_id}",
    response_model=AccessLogEntry,
    summary="Get log details",
    description="Get details of a specific access log. Admin only.",
)
async def get_log(
    log_id: Annotated[str, Path(description="Access log ID")],
    services: Container,
    _: AdminUser,
) -> AccessLogEntry:
    """Get details of a specific access log entry."""
    for log in services.store.access_logs:
        if log.id == log_id:
            return AccessLogEntry.model_validate(log, from_attributes=True)
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Access log not found",
    )
