"""
Visitor registration and approval use cases.

Registration order: validate the form and resolve the visit window,
refuse banned identifiers, classify the pass, mint a unique code and
create the visitor. Nothing is written when any step fails.
"""

from dataclasses import replace
from datetime import datetime

from vims.application.notifications import NotificationService
from vims.application.store import Store
from vims.core.logging import get_logger
from vims.domain.access import bundle_for_registration, find_blacklisted
from vims.domain.errors import (
    BlacklistedError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from vims.domain.models import (
    REGISTERED_BY_SELF,
    BlacklistRecord,
    Visitor,
    VisitorStatus,
    VisitorType,
)
from vims.domain.policies import (
    LONG_VISIT,
    PurposeDurationPolicy,
    RegistrationValidator,
    VisitorRegistration,
    window_errors,
)
from vims.domain.services import QRClassifier, UniqueCodeGenerator

logger = get_logger(__name__)

CODE_LENGTH = 5


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class RegistrationService:
    """
    Creates visitors and moves them through approval.

    Example:
        service = RegistrationService(store, notifications)
        visitor = service.register(form)
        service.approve(visitor.id, actor="admin")
    """

    def __init__(
        self,
        store: Store,
        notifications: NotificationService,
        classifier: QRClassifier | None = None,
        policy: PurposeDurationPolicy | None = None,
        validator: RegistrationValidator | None = None,
        codes: UniqueCodeGenerator | None = None,
    ):
        self._store = store
        self._notifications = notifications
        self.classifier = classifier or QRClassifier()
        self.policy = policy or PurposeDurationPolicy()
        self.validator = validator or RegistrationValidator()
        self.codes = codes or UniqueCodeGenerator()

    def check_blacklist(
        self,
        ic_number: str | None = None,
        plate: str | None = None,
        phone: str | None = None,
    ) -> BlacklistRecord | None:
        """Active ban matching any of the identifiers, if one exists."""
        bundle = bundle_for_registration(ic_number, plate, phone)
        return find_blacklisted(bundle, self._store.blacklist.values())

    def register(
        self,
        form: VisitorRegistration,
        registered_by: str = REGISTERED_BY_SELF,
        require_email: bool = False,
    ) -> Visitor:
        """
        Register a visitor.

        Raises:
            ValidationError: With every failing field.
            BlacklistedError: If any identifier is banned.
        """
        self.validator.validate(form, require_email=require_email)
        now = self._store.now()
        visit_date, end_date = self.policy.resolve(form, now, self._store.tz)

        banned = self.check_blacklist(form.ic_number, form.license_plate, form.contact)
        if banned is not None:
            logger.warning(
                "registration_blocked",
                blacklist_id=banned.id,
                ic_number=form.ic_number,
                contact=form.contact,
                purpose=form.purpose,
            )
            raise BlacklistedError(banned.reason, banned.id)

        qr_type = self.classifier.classify(form.transport_mode, form.purpose)
        code = self.codes.generate(self._store.visitors.keys())
        status = VisitorStatus.APPROVED if form.type == VisitorType.ADHOC else VisitorStatus.PENDING

        visitor = Visitor(
            id=code,
            name=form.name.strip(),
            contact=form.contact.strip(),
            ic_number=form.ic_number.strip(),
            purpose=form.purpose,
            type=form.type,
            transport_mode=form.transport_mode,
            status=status,
            qr_type=qr_type,
            visit_date=visit_date,
            end_date=end_date,
            created_at=now,
            email=_clean(form.email),
            license_plate=(_clean(form.license_plate) or "").upper() or None,
            vehicle_color=_clean(form.vehicle_color),
            drop_off_area=_clean(form.drop_off_area),
            specified_location=_clean(form.specified_location),
            staff_number=_clean(form.staff_number),
            location=_clean(form.location),
            ic_photo=form.ic_photo or None,
            supporting_document=form.supporting_document or None,
            registered_by=registered_by,
        )
        self._store.save_visitor(visitor)
        logger.info(
            "visitor_registered",
            visitor_id=visitor.id,
            type=visitor.type.value,
            qr_type=visitor.qr_type.value,
            status=visitor.status.value,
            registered_by=registered_by,
        )
        return visitor

    def invite(self, form: VisitorRegistration, inviter: str) -> Visitor:
        """
        Pre-register a guest on behalf of a staff member and e-mail the invitation.
        """
        form = replace(form, type=VisitorType.PREREGISTERED)
        visitor = self.register(form, registered_by=inviter, require_email=True)
        self._notifications.send_invitation(visitor, inviter)
        return visitor

    def get_by_code(self, code: str) -> Visitor:
        """
        Status check lookup.

        Raises:
            ValidationError: If the code is not five digits.
            NotFoundError: If no visitor has this code.
        """
        code = (code or "").strip()
        if len(code) != CODE_LENGTH or not code.isdigit():
            raise ValidationError({"code": "Enter your 5-digit visitor code"})
        visitor = self._store.visitors.get(code)
        if visitor is None:
            raise NotFoundError("Visitor", code)
        return visitor

    def get(self, visitor_id: str) -> Visitor:
        visitor = self._store.visitors.get(visitor_id)
        if visitor is None:
            raise NotFoundError("Visitor", visitor_id)
        return visitor

    def list_visitors(
        self,
        status: VisitorStatus | None = None,
        query: str | None = None,
        registered_by: str | None = None,
    ) -> list[Visitor]:
        """Visitors newest first, optionally filtered."""
        needle = (query or "").strip().lower()
        result = []
        for visitor in self._store.visitors.values():
            if status is not None and visitor.status != status:
                continue
            if registered_by is not None and visitor.registered_by != registered_by:
                continue
            if needle and not any(
                needle in (field or "").lower()
                for field in (visitor.id, visitor.name, visitor.contact, visitor.ic_number, visitor.license_plate)
            ):
                continue
            result.append(visitor)
        return sorted(result, key=lambda v: v.created_at, reverse=True)

    def reschedule(
        self,
        code: str,
        visit_date: datetime,
        end_date: datetime | None = None,
    ) -> Visitor:
        """
        Move a pre-registered visit.

        Without ``end_date`` the visit keeps its current length. The new
        window goes through the same checks and cap as registration.

        Raises:
            InvalidTransitionError: For walk-ins, rejected or already entered visits.
            ValidationError: If the new window is invalid.
        """
        visitor = self.get_by_code(code)
        if visitor.type != VisitorType.PREREGISTERED:
            raise InvalidTransitionError("Only pre-registered visits can be rescheduled")
        if visitor.status == VisitorStatus.REJECTED:
            raise InvalidTransitionError("Rejected visits cannot be rescheduled")
        if visitor.time_in is not None:
            raise InvalidTransitionError("Visit already started")

        if end_date is None and visitor.end_date is not None:
            end_date = visit_date + (visitor.end_date - visitor.visit_date)

        errors = window_errors(visit_date, end_date)
        if not errors and end_date - visit_date > LONG_VISIT and not visitor.supporting_document:
            errors["supporting_document"] = "Attachment required for visits over 7 days"
        if errors:
            raise ValidationError(errors)

        visitor.visit_date, visitor.end_date = self.policy.clamp(visitor.purpose, visit_date, end_date)
        self._store.save_visitor(visitor)
        logger.info(
            "visitor_rescheduled",
            visitor_id=visitor.id,
            visit_date=visitor.visit_date.isoformat(),
        )
        return visitor

    def approve(self, visitor_id: str, actor: str) -> Visitor:
        visitor = self._transition(visitor_id, VisitorStatus.APPROVED, actor)
        self._notifications.send_pass(visitor)
        return visitor

    def reject(self, visitor_id: str, reason: str | None, actor: str) -> Visitor:
        return self._transition(visitor_id, VisitorStatus.REJECTED, actor, reason)

    def _transition(
        self,
        visitor_id: str,
        status: VisitorStatus,
        actor: str,
        reason: str | None = None,
    ) -> Visitor:
        """
        Raises:
            NotFoundError: If the visitor does not exist.
            InvalidTransitionError: If the visitor is no longer pending.
        """
        visitor = self.get(visitor_id)
        if visitor.status != VisitorStatus.PENDING:
            raise InvalidTransitionError(
                f"Visitor {visitor_id} is {visitor.status.value}, not PENDING"
            )
        visitor.status = status
        if status == VisitorStatus.REJECTED:
            visitor.rejection_reason = _clean(reason)
        self._store.save_visitor(visitor)
        logger.info(
            "visitor_status_changed",
            visitor_id=visitor.id,
            status=status.value,
            actor=actor,
        )
        self._notifications.notify_status_change(visitor)
        return visitor
