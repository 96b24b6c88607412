"""Staff notification API routes."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Path
from pydantic import BaseModel, ConfigDict

from vims.api.deps import CurrentUser, Notifications
from vims.domain.models import VisitorStatus

router = APIRouter(prefix="/notifications", tags=["notifications"])


class NotificationEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    recipient: str
    message: str
    visitor_id: str
    status: VisitorStatus
    timestamp: datetime
    read: bool


class NotificationListResponse(BaseModel):
    notifications: list[NotificationEntry]
    count: int
    unread: int


@router.get("", response_model=NotificationListResponse, summary="My notifications")
async def list_notifications(
    notifications: Notifications,
    user: CurrentUser,
    unread_only: bool = False,
) -> NotificationListResponse:
    items = notifications.list_for(user.username, unread_only=unread_only)
    return NotificationListResponse(
        notifications=[NotificationEntry.model_validate(n) for n in items],
        count=len(items),
        unread=sum(not n.read for n in items),
    )


@router.post("/{notification_id}/read", response_model=NotificationEntry, summary="Mark as read")
async def mark_read(
    notification_id: Annotated[str, Path(description="Notification ID")],
    notifications: Notifications,
    user: CurrentUser,
) -> NotificationEntry:
    return NotificationEntry.model_validate(notifications.mark_read(notification_id, user.username))
