"""
Visitor API routes.

Public endpoints serve the self-registration kiosk and the status page;
staff invite guests, admins approve or reject pending requests.
"""

import asyncio
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Path, Query, status
from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from vims.api.deps import AdminUser, Container, CurrentUser, RateLimited, Registration, StaffUser
from vims.core.logging import get_logger
from vims.domain.errors import NotFoundError
from vims.domain.models import QRType, TransportMode, UserRole, Visitor, VisitorStatus, VisitorType
from vims.domain.policies import PurposeDurationPolicy, VisitorRegistration

logger = get_logger(__name__)

router = APIRouter(prefix="/visitors", tags=["visitors"])

_policy = PurposeDurationPolicy()


class VisitorForm(BaseModel):
    """Fields shared by self-registration and staff invitations."""

    name: str = Field(default="", max_length=200)
    contact: str = Field(default="", max_length=30, examples=["+60 12-345 6789"])
    ic_number: str = Field(default="", max_length=30, examples=["900101-14-5678"])
    purpose: str = Field(default="", examples=["Food Services"])
    transport_mode: TransportMode = TransportMode.NON_CAR
    visit_date: AwareDatetime | None = None
    end_date: AwareDatetime | None = None
    email: str | None = None
    license_plate: str | None = None
    vehicle_color: str | None = None
    drop_off_area: str | None = None
    specified_location: str | None = None
    staff_number: str | None = None
    location: str | None = None
    ic_photo: str | None = Field(default=None, description="Image data URL")
    supporting_document: str | None = Field(default=None, description="Attachment data URL")


class RegisterRequest(VisitorForm):
    type: VisitorType = VisitorType.ADHOC


class VisitorResponse(BaseModel):
    """Visitor record as shown to staff."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    contact: str
    ic_number: str
    purpose: str
    type: VisitorType
    transport_mode: TransportMode
    status: VisitorStatus
    qr_type: QRType
    visit_date: datetime
    end_date: datetime | None
    created_at: datetime
    email: str | None
    license_plate: str | None
    vehicle_color: str | None
    drop_off_area: str | None
    specified_location: str | None
    staff_number: str | None
    location: str | None
    rejection_reason: str | None
    time_in: datetime | None
    time_out: datetime | None
    registered_by: str
    duration_warning: str | None = None


class VisitorStatusResponse(BaseModel):
    """Public status-page view of a visit."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    purpose: str
    type: VisitorType
    status: VisitorStatus
    qr_type: QRType
    visit_date: datetime
    end_date: datetime | None
    rejection_reason: str | None
    time_in: datetime | None
    time_out: datetime | None
    duration_warning: str | None = None


class VisitorListResponse(BaseModel):
    visitors: list[VisitorResponse]
    count: int


class RescheduleRequest(BaseModel):
    visit_date: AwareDatetime
    end_date: AwareDatetime | None = None


class RejectRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class BlacklistCheckRequest(BaseModel):
    ic_number: str | None = None
    license_plate: str | None = None
    phone: str | None = None


class BlacklistCheckResponse(BaseModel):
    blacklisted: bool
    reason: str | None = None


class OcrRequest(BaseModel):
    image: str = Field(..., min_length=1, description="Image data URL of an identity card")


class OcrResponse(BaseModel):
    name: str | None = None
    ic_number: str | None = None


def _to_response(visitor: Visitor) -> VisitorResponse:
    response = VisitorResponse.model_validate(visitor)
    response.duration_warning = _policy.warning_for(visitor.purpose)
    return response


def _to_status(visitor: Visitor) -> VisitorStatusResponse:
    response = VisitorStatusResponse.model_validate(visitor)
    response.duration_warning = _policy.warning_for(visitor.purpose)
    return response


@router.post(
    "",
    response_model=VisitorResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a visitor",
    responses={
        403: {"description": "An identifier is blacklisted"},
        422: {"description": "Invalid form fields"},
    },
)
async def register_visitor(
    request: RegisterRequest,
    registration: Registration,
    _: RateLimited,
) -> VisitorResponse:
    """
    Self-registration from the kiosk.

    Walk-in (ADHOC) visitors are approved immediately; pre-registered
    visitors wait for an admin.
    """
    visitor = registration.register(VisitorRegistration(**request.model_dump()))
    return _to_response(visitor)


@router.post(
    "/invite",
    response_model=VisitorResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Invite a guest",
)
async def invite_visitor(
    request: VisitorForm,
    registration: Registration,
    user: StaffUser,
) -> VisitorResponse:
    """Pre-register a guest on behalf of the signed-in staff member and e-mail the invitation."""
    visitor = registration.invite(VisitorRegistration(**request.model_dump()), inviter=user.username)
    return _to_response(visitor)


@router.post(
    "/blacklist-check",
    response_model=BlacklistCheckResponse,
    summary="Check identifiers before registering",
)
async def blacklist_check(
    request: BlacklistCheckRequest,
    registration: Registration,
    _: RateLimited,
) -> BlacklistCheckResponse:
    record = registration.check_blacklist(request.ic_number, request.license_plate, request.phone)
    if record is None:
        return BlacklistCheckResponse(blacklisted=False)
    return BlacklistCheckResponse(blacklisted=True, reason=record.reason)


@router.post(
    "/ocr",
    response_model=OcrResponse,
    summary="Read name and IC number from an ID card photo",
)
async def read_id_card(
    request: OcrRequest,
    services: Container,
    _: RateLimited,
) -> OcrResponse:
    """Failures yield an empty result, never an error."""
    fields = await asyncio.to_thread(services.id_reader.extract_id_fields, request.image)
    return OcrResponse(name=fields.name, ic_number=fields.ic_number)


@router.get(
    "/status/{code}",
    response_model=VisitorStatusResponse,
    summary="Check visit status by code",
)
async def visitor_status(
    code: Annotated[str, Path(description="5-digit visitor code")],
    registration: Registration,
    _: RateLimited,
) -> VisitorStatusResponse:
    return _to_status(registration.get_by_code(code))


@router.put(
    "/status/{code}/schedule",
    response_model=VisitorStatusResponse,
    summary="Reschedule a pre-registered visit",
    responses={409: {"description": "Visit can no longer be rescheduled"}},
)
async def reschedule_visit(
    code: Annotated[str, Path(description="5-digit visitor code")],
    request: RescheduleRequest,
    registration: Registration,
    _: RateLimited,
) -> VisitorStatusResponse:
    visitor = registration.reschedule(code, request.visit_date, request.end_date)
    return _to_status(visitor)


@router.get(
    "",
    response_model=VisitorListResponse,
    summary="List visitors",
    description="Admins see every visitor; staff see the guests they invited.",
)
async def list_visitors(
    registration: Registration,
    user: CurrentUser,
    status_filter: VisitorStatus | None = Query(None, alias="status"),
    q: str | None = Query(None, description="Matches code, name, phone, IC or plate"),
) -> VisitorListResponse:
    registered_by = None if user.role == UserRole.ADMIN else user.username
    visitors = registration.list_visitors(status=status_filter, query=q, registered_by=registered_by)
    return VisitorListResponse(
        visitors=[_to_response(v) for v in visitors],
        count=len(visitors),
    )


@router.get(
    "/{visitor_id}",
    response_model=VisitorResponse,
    summary="Get a visitor",
    description="Staff can only open the guests they invited.",
)
async def get_visitor(
    visitor_id: Annotated[str, Path(description="Visitor code")],
    registration: Registration,
    user: CurrentUser,
) -> VisitorResponse:
    visitor = registration.get(visitor_id)
    if user.role != UserRole.ADMIN and visitor.registered_by != user.username:
        raise NotFoundError("Visitor", visitor_id)
    return _to_response(visitor)


@router.post(
    "/{visitor_id}/approve",
    response_model=VisitorResponse,
    summary="Approve a pending visitor",
    responses={409: {"description": "Visitor is not pending"}},
)
async def approve_visitor(
    visitor_id: Annotated[str, Path(description="Visitor code")],
    registration: Registration,
    user: AdminUser,
) -> VisitorResponse:
    return _to_response(registration.approve(visitor_id, actor=user.username))


@router.post(
    "/{visitor_id}/reject",
    response_model=VisitorResponse,
    summary="Reject a pending visitor",
    responses={409: {"description": "Visitor is not pending"}},
)
async def reject_visitor(
    visitor_id: Annotated[str, Path(description="Visitor code")],
    request: RejectRequest,
    registration: Registration,
    user: AdminUser,
) -> VisitorResponse:
    return _to_response(registration.reject(visitor_id, request.reason, actor=user.username))
