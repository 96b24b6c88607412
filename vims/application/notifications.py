"""
Staff notifications and visitor e-mail.

Creates in-app notifications for the staff member who registered a
visitor and composes the invitation and pass e-mails sent through the
relay.
"""

from html import escape

from vims.application.store import Store, new_id
from vims.core.logging import get_logger
from vims.domain.errors import NotFoundError
from vims.domain.models import REGISTERED_BY_SELF, Notification, QRType, Visitor
from vims.infrastructure.notify import EmailMessage, EmailNotifier

logger = get_logger(__name__)

QR_ACCESS_TEXT = {
    QRType.QR1: "Front gate only",
    QRType.QR2: "Elevator only",
    QRType.QR3: "Front gate and elevator",
    QRType.NONE: "Vehicle entry by license plate recognition",
}


def _render(lines: list[str]) -> tuple[str, str]:
    text = "\n".join(lines)
    html = "".join(f"<p>{escape(line)}</p>" for line in lines)
    return html, text


def invitation_email(visitor: Visitor, inviter: str) -> EmailMessage:
    html, text = _render([
        f"Hello {visitor.name},",
        f"{inviter} has invited you to visit on {visitor.visit_date:%d %b %Y %H:%M}.",
        f"Your visitor code is {visitor.id}. It becomes valid once the visit is approved.",
    ])
    return EmailMessage(
        to=visitor.email or "",
        subject="You have been invited to visit",
        html=html,
        text=text,
    )


def pass_email(visitor: Visitor) -> EmailMessage:
    html, text = _render([
        f"Hello {visitor.name},",
        "Your visit has been approved.",
        f"Visitor code: {visitor.id}",
        f"Access: {QR_ACCESS_TEXT[visitor.qr_type]} ({visitor.qr_type.value})",
        f"Valid from {visitor.visit_date:%d %b %Y %H:%M}"
        + (f" until {visitor.end_date:%d %b %Y %H:%M}." if visitor.end_date else "."),
    ])
    return EmailMessage(
        to=visitor.email or "",
        subject=f"Your visitor pass {visitor.id}",
        html=html,
        text=text,
    )


class NotificationService:
    """
    Service for staff notifications and outbound visitor e-mail.

    Example:
        service = NotificationService(store, notifier)
        service.notify_status_change(visitor)
        unread = service.list_for("staff1", unread_only=True)
    """

    def __init__(self, store: Store, notifier: EmailNotifier):
        self._store = store
        self._notifier = notifier

    def notify_status_change(self, visitor: Visitor) -> Notification | None:
        """
        Tell the registering staff member about an approval decision.

        Self-registered visitors have nobody to notify.
        """
        if not visitor.registered_by or visitor.registered_by == REGISTERED_BY_SELF:
            return None

        notification = Notification(
            id=new_id("notif"),
            recipient=visitor.registered_by,
            message=f"Guest update: {visitor.name} has been {visitor.status.value.lower()}.",
            visitor_id=visitor.id,
            status=visitor.status,
            timestamp=self._store.now(),
        )
        self._store.save_notification(notification)
        logger.info(
            "notification_created",
            recipient=notification.recipient,
            visitor_id=visitor.id,
            status=visitor.status.value,
        )
        return notification

    def list_for(self, username: str, unread_only: bool = False) -> list[Notification]:
        items = [
            n
            for n in self._store.notifications.values()
            if n.recipient == username and not (unread_only and n.read)
        ]
        return sorted(items, key=lambda n: n.timestamp, reverse=True)

    def mark_read(self, notification_id: str, username: str) -> Notification:
        """
        Raises:
            NotFoundError: If the notification does not exist or belongs to someone else.
        """
        notification = self._store.notifications.get(notification_id)
        if notification is None or notification.recipient != username:
            raise NotFoundError("Notification", notification_id)
        if not notification.read:
            self._store.mark_notification_read(notification)
        return notification

    def send_invitation(self, visitor: Visitor, inviter: str) -> None:
        if visitor.email:
            self._notifier.send(invitation_email(visitor, inviter))

    def send_pass(self, visitor: Visitor) -> None:
        if visitor.email:
            self._notifier.send(pass_email(visitor))
