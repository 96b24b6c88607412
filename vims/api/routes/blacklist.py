"""
Blacklist management API routes.

Admin-only. Bans are lifted, never deleted.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Path, Query, status
from pydantic import BaseModel, ConfigDict, Field

from vims.api.deps import AdminUser, Blacklist
from vims.domain.models import BlacklistStatus

router = APIRouter(prefix="/blacklist", tags=["blacklist"])


class BlacklistEntry(BaseModel):
    """Response model for a blacklist record."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    reason: str
    created_by: str
    timestamp: datetime
    name: str | None
    ic_number: str | None
    license_plate: str | None
    phone: str | None
    status: BlacklistStatus


class BlacklistListResponse(BaseModel):
    entries: list[BlacklistEntry]
    count: int


class BlacklistCreateRequest(BaseModel):
    """At least one identifier and a reason are required."""

    reason: str = Field(default="", max_length=500)
    name: str | None = Field(None, max_length=200)
    ic_number: str | None = Field(None, max_length=30)
    license_plate: str | None = Field(None, max_length=20)
    phone: str | None = Field(None, max_length=30)


@router.get("", response_model=BlacklistListResponse, summary="List blacklist records")
async def list_blacklist(
    blacklist: Blacklist,
    _: AdminUser,
    q: str | None = Query(None, description="Matches name, IC, plate, phone or reason"),
    status_filter: BlacklistStatus | None = Query(None, alias="status"),
) -> BlacklistListResponse:
    records = blacklist.list(query=q, status=status_filter)
    return BlacklistListResponse(
        entries=[BlacklistEntry.model_validate(r) for r in records],
        count=len(records),
    )


@router.post(
    "",
    response_model=BlacklistEntry,
    status_code=status.HTTP_201_CREATED,
    summary="Blacklist a person or vehicle",
)
async def create_blacklist_entry(
    request: BlacklistCreateRequest,
    blacklist: Blacklist,
    user: AdminUser,
) -> BlacklistEntry:
    record = blacklist.add(
        request.reason,
        actor=user.username,
        name=request.name,
        ic_number=request.ic_number,
        license_plate=request.license_plate,
        phone=request.phone,
    )
    return BlacklistEntry.model_validate(record)


@router.post(
    "/{record_id}/unban",
    response_model=BlacklistEntry,
    summary="Lift a ban",
    responses={409: {"description": "Already unbanned"}},
)
async def unban(
    record_id: Annotated[str, Path(description="Blacklist record ID")],
    blacklist: Blacklist,
    user: AdminUser,
) -> BlacklistEntry:
    return BlacklistEntry.model_validate(blacklist.unban(record_id, actor=user.username))
