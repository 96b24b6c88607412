"""
Visit window and form validity rules.

Every check collects all failing fields before raising so a caller can
show the full list at once. Nothing here mutates state.
"""

import re
from dataclasses import dataclass
from datetime import datetime, time, timedelta, tzinfo
from typing import ClassVar

from vims.domain.errors import ValidationError
from vims.domain.models import (
    PURPOSE_COURIER,
    PURPOSE_E_HAILING,
    PURPOSE_FOOD,
    PURPOSE_GARBAGE,
    PURPOSE_PUBLIC,
    PURPOSE_SAFEGUARD,
    SERVICE_PURPOSES,
    STAFF_PURPOSES,
    VIP_DESIGNATION_OTHER,
    TransportMode,
    VisitorType,
)

PHONE_PATTERN = re.compile(r"^\+?[\d\s\-()]{7,15}$")
LONG_VISIT = timedelta(days=7)


@dataclass
class VisitorRegistration:
    """Raw registration form, before validation and classification."""

    name: str
    contact: str
    ic_number: str
    purpose: str
    type: VisitorType = VisitorType.ADHOC
    transport_mode: TransportMode = TransportMode.NON_CAR
    visit_date: datetime | None = None
    end_date: datetime | None = None
    email: str | None = None
    license_plate: str | None = None
    vehicle_color: str | None = None
    drop_off_area: str | None = None
    specified_location: str | None = None
    staff_number: str | None = None
    location: str | None = None
    ic_photo: str | None = None
    supporting_document: str | None = None


def _blank(value: str | None) -> bool:
    return not value or not value.strip()


@dataclass
class PurposeDurationPolicy:
    """
    Caps visit length by purpose and resolves the effective visit window.

    Example:
        >>> policy = PurposeDurationPolicy()
        >>> policy.cap_for("Food Services")
        datetime.timedelta(seconds=2700)
        >>> policy.cap_for("Public") is None
        True
    """

    CAPS: ClassVar[dict[str, timedelta]] = {
        PURPOSE_E_HAILING: timedelta(minutes=45),
        PURPOSE_FOOD: timedelta(minutes=45),
        PURPOSE_COURIER: timedelta(minutes=45),
        PURPOSE_GARBAGE: timedelta(minutes=120),
        PURPOSE_SAFEGUARD: timedelta(minutes=120),
    }

    def cap_for(self, purpose: str | None) -> timedelta | None:
        return self.CAPS.get(purpose or "")

    def warning_for(self, purpose: str | None) -> str | None:
        """Notice shown on the pass of a capped visit."""
        cap = self.cap_for(purpose)
        if cap is None:
            return None
        minutes = int(cap.total_seconds() // 60)
        if minutes % 60 == 0:
            hours = minutes // 60
            span = f"{hours} hour" if hours == 1 else f"{hours} hours"
        else:
            span = f"{minutes} minutes"
        return f"This visit must be completed within {span}."

    def adhoc_window(
        self,
        purpose: str,
        now: datetime,
        tz: tzinfo,
    ) -> tuple[datetime, datetime]:
        """
        Window for a walk-in visitor.

        Capped purposes get ``[now, now + cap]``; everyone else gets the
        whole local calendar day.
        """
        cap = self.cap_for(purpose)
        if cap is not None:
            return now, now + cap
        local_day = now.astimezone(tz).date()
        start = datetime.combine(local_day, time.min, tzinfo=tz)
        end = datetime.combine(local_day, time(23, 59, 59), tzinfo=tz)
        return start, end

    def clamp(self, purpose: str, start: datetime, end: datetime) -> tuple[datetime, datetime]:
        """Shorten ``end`` to ``start + cap`` when the caller asked for more."""
        cap = self.cap_for(purpose)
        if cap is not None and end - start > cap:
            end = start + cap
        return start, end

    def resolve(
        self,
        form: VisitorRegistration,
        now: datetime,
        tz: tzinfo,
    ) -> tuple[datetime, datetime]:
        """
        Effective ``(visit_date, end_date)`` for a validated form.

        Raises:
            ValidationError: If a pre-registered window is missing or inverted.
        """
        if form.type == VisitorType.ADHOC:
            return self.adhoc_window(form.purpose, now, tz)

        errors = window_errors(form.visit_date, form.end_date)
        if errors:
            raise ValidationError(errors)
        return self.clamp(form.purpose, form.visit_date, form.end_date)


def window_errors(start: datetime | None, end: datetime | None) -> dict[str, str]:
    errors: dict[str, str] = {}
    if start is None:
        errors["visit_date"] = "Start date/time is required"
    if end is None:
        errors["end_date"] = "End date/time is required"
    if start is not None and end is not None and end <= start:
        errors["end_date"] = "End time must be after start time"
    return errors


@dataclass
class RegistrationValidator:
    """
    Collects every field error of a registration form.

    Pre-registered visits are checked for a valid window; walk-in windows
    are assigned by PurposeDurationPolicy and never come from the form.
    """

    def errors(self, form: VisitorRegistration, require_email: bool = False) -> dict[str, str]:
        errors: dict[str, str] = {}

        if _blank(form.name):
            errors["name"] = "Full name is required"

        if _blank(form.contact):
            errors["contact"] = "Phone number is required"
        elif not PHONE_PATTERN.match(form.contact.strip()):
            errors["contact"] = "Enter a valid phone number"

        if require_email and _blank(form.email):
            errors["email"] = "Email is required"
        if _blank(form.ic_number):
            errors["ic_number"] = "IC Number is required"
        if _blank(form.purpose):
            errors["purpose"] = "Purpose of visit is required"

        if form.type == VisitorType.PREREGISTERED:
            errors.update(window_errors(form.visit_date, form.end_date))
            if (
                "end_date" not in errors
                and "visit_date" not in errors
                and form.end_date - form.visit_date > LONG_VISIT
                and _blank(form.supporting_document)
            ):
                errors["supporting_document"] = "Attachment required for visits over 7 days"

        if form.purpose in SERVICE_PURPOSES and _blank(form.drop_off_area):
            errors["drop_off_area"] = "Designated area is required"
        if form.purpose == PURPOSE_PUBLIC and _blank(form.specified_location):
            errors["specified_location"] = "Please select a location"
        if form.purpose in STAFF_PURPOSES:
            if _blank(form.staff_number):
                errors["staff_number"] = "Staff number is required"
            if _blank(form.location):
                errors["location"] = "Location is required"

        if form.transport_mode == TransportMode.CAR and _blank(form.license_plate):
            errors["license_plate"] = "License plate is required"

        return errors

    def validate(self, form: VisitorRegistration, require_email: bool = False) -> None:
        """
        Raises:
            ValidationError: With every failing field.
        """
        errors = self.errors(form, require_email=require_email)
        if errors:
            raise ValidationError(errors)


def validate_vip_form(
    name: str | None,
    contact: str | None,
    designation: str | None,
    custom_designation: str | None,
    license_plate: str | None,
    valid_from: datetime | None,
    valid_until: datetime | None,
    reason: str | None,
) -> None:
    """Raise ValidationError listing every missing or inconsistent VIP field."""
    errors: dict[str, str] = {}
    if _blank(name):
        errors["name"] = "Full Name is required"
    if _blank(contact):
        errors["contact"] = "Contact is required"
    if _blank(designation):
        errors["designation"] = "Designation is required"
    elif designation == VIP_DESIGNATION_OTHER and _blank(custom_designation):
        errors["custom_designation"] = "Please specify designation"
    if _blank(license_plate):
        errors["license_plate"] = "License Plate is required"
    if valid_from is None:
        errors["valid_from"] = "Start date required"
    if valid_until is None:
        errors["valid_until"] = "End date required"
    elif valid_from is not None and valid_until <= valid_from:
        errors["valid_until"] = "End date must be after start date"
    if _blank(reason):
        errors["reason"] = "Reason/Notes required for audit"
    if errors:
        raise ValidationError(errors)


def validate_blacklist_form(
    ic_number: str | None,
    license_plate: str | None,
    phone: str | None,
    reason: str | None,
) -> None:
    errors: dict[str, str] = {}
    if _blank(ic_number) and _blank(license_plate) and _blank(phone):
        errors["general"] = "At least one identifier (IC, Plate, or Phone) is required"
    if _blank(reason):
        errors["reason"] = "Reason for blacklisting is required"
    if errors:
        raise ValidationError(errors)
