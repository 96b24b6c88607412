"""
VIP management API routes.

Admin-only. Every change is written to the access log as VIP_UPDATE.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Path, Query, status
from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from vims.api.deps import AdminUser, Vips
from vims.application.vip import VipForm
from vims.domain.models import VIP_DESIGNATIONS, VipStatus, VipType

router = APIRouter(prefix="/vips", tags=["vip"])


class VipEntry(BaseModel):
    """Response model for a VIP profile."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    vip_type: VipType
    designation: str
    display_designation: str
    custom_designation: str | None
    name: str
    contact: str
    ic_number: str | None
    license_plate: str
    vehicle_color: str | None
    valid_from: datetime
    valid_until: datetime
    auto_approve: bool
    auto_open_gate: bool
    access_points: list[str]
    reason: str
    status: VipStatus
    created_by: str
    created_at: datetime
    updated_by: str | None
    updated_at: datetime | None
    last_entry_time: datetime | None
    last_exit_time: datetime | None


class VipListResponse(BaseModel):
    vips: list[VipEntry]
    count: int


class VipCreateRequest(BaseModel):
    name: str = ""
    contact: str = ""
    designation: str = Field(default="", examples=["Minister"])
    license_plate: str = Field(default="", examples=["VIP 1"])
    reason: str = ""
    vip_type: VipType = VipType.VIP
    custom_designation: str | None = None
    ic_number: str | None = None
    vehicle_color: str | None = None
    valid_from: AwareDatetime | None = None
    valid_until: AwareDatetime | None = None
    auto_approve: bool = True
    auto_open_gate: bool = True
    access_points: list[str] = Field(default_factory=lambda: ["ENTRY_LPR", "EXIT_LPR"])
    attachment: str | None = None


class VipUpdateRequest(BaseModel):
    """Only the fields present in the request are changed."""

    name: str | None = None
    contact: str | None = None
    designation: str | None = None
    license_plate: str | None = None
    reason: str | None = None
    vip_type: VipType | None = None
    custom_designation: str | None = None
    ic_number: str | None = None
    vehicle_color: str | None = None
    valid_from: AwareDatetime | None = None
    valid_until: AwareDatetime | None = None
    auto_approve: bool | None = None
    auto_open_gate: bool | None = None
    access_points: list[str] | None = None
    attachment: str | None = None


@router.get("/designations", response_model=list[str], summary="Designation choices")
async def list_designations(_: AdminUser) -> list[str]:
    return list(VIP_DESIGNATIONS)


@router.get("", response_model=VipListResponse, summary="List VIP profiles")
async def list_vips(
    vips: Vips,
    _: AdminUser,
    q: str | None = Query(None, description="Matches name, plate, designation or contact"),
    status_filter: VipStatus | None = Query(None, alias="status"),
) -> VipListResponse:
    records = vips.list(query=q, status=status_filter)
    return VipListResponse(
        vips=[VipEntry.model_validate(v) for v in records],
        count=len(records),
    )


@router.post(
    "",
    response_model=VipEntry,
    status_code=status.HTTP_201_CREATED,
    summary="Create a VIP profile",
)
async def create_vip(request: VipCreateRequest, vips: Vips, user: AdminUser) -> VipEntry:
    vip = vips.create(VipForm(**request.model_dump()), actor=user.username)
    return VipEntry.model_validate(vip)


@router.get("/{vip_id}", response_model=VipEntry, summary="Get a VIP profile")
async def get_vip(
    vip_id: Annotated[str, Path(description="VIP ID")],
    vips: Vips,
    _: AdminUser,
) -> VipEntry:
    return VipEntry.model_validate(vips.get(vip_id))


@router.patch("/{vip_id}", response_model=VipEntry, summary="Update a VIP profile")
async def update_vip(
    vip_id: Annotated[str, Path(description="VIP ID")],
    request: VipUpdateRequest,
    vips: Vips,
    user: AdminUser,
) -> VipEntry:
    vip = vips.update(vip_id, request.model_dump(exclude_unset=True), actor=user.username)
    return VipEntry.model_validate(vip)


@router.post(
    "/{vip_id}/deactivate",
    response_model=VipEntry,
    summary="Deactivate a VIP profile",
    responses={409: {"description": "Already deactivated"}},
)
async def deactivate_vip(
    vip_id: Annotated[str, Path(description="VIP ID")],
    vips: Vips,
    user: AdminUser,
) -> VipEntry:
    return VipEntry.model_validate(vips.deactivate(vip_id, actor=user.username))
