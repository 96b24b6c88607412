"""
Operations dashboard API routes.

Admin-only view of request counts and everyone currently inside.
"""

from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict

from vims.api.deps import AdminUser, Dashboard
from vims.domain.models import TransportMode

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


class CountsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    pending: int
    approved: int
    rejected: int
    total: int
    inside: int


class OngoingEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    kind: str
    name: str
    type: str
    plate: str | None
    transport: TransportMode
    entry_at: datetime | None
    is_vip: bool
    overstaying: bool
    duration: str


class DashboardResponse(BaseModel):
    counts: CountsResponse
    ongoing: list[OngoingEntryResponse]


@router.get("", response_model=DashboardResponse, summary="Counts and ongoing visits")
async def get_dashboard(dashboard: Dashboard, _: AdminUser) -> DashboardResponse:
    now = dashboard.now()
    return DashboardResponse(
        counts=CountsResponse.model_validate(dashboard.counts(now)),
        ongoing=[OngoingEntryResponse.model_validate(e) for e in dashboard.ongoing(now)],
    )


@router.get(
    "/overstaying",
    response_model=list[OngoingEntryResponse],
    summary="Visitors still inside after their visit window",
)
async def overstaying(dashboard: Dashboard, _: AdminUser) -> list[OngoingEntryResponse]:
    return [OngoingEntryResponse.model_validate(e) for e in dashboard.overstaying()]
