"""
Domain services for identifier normalization and QR classification.

These services contain pure business logic with no infrastructure
dependencies. They can be easily unit tested.
"""

import re
import secrets
from collections.abc import Callable, Collection
from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar

from vims.domain.models import (
    PURPOSE_PUBLIC,
    SERVICE_PURPOSES,
    QRType,
    TransportMode,
    Visitor,
)

_PLATE_STRIP = re.compile(r"[^A-Z0-9]")
_PHONE_STRIP = re.compile(r"[^\d+]")


def normalize_plate(plate: str | None) -> str:
    """
    Normalize a license plate for comparison.

    Example:
        >>> normalize_plate("wxy 1234")
        'WXY1234'
    """
    if not plate:
        return ""
    return _PLATE_STRIP.sub("", plate.upper())


def normalize_phone(phone: str | None) -> str:
    """
    Normalize a phone number for comparison.

    Example:
        >>> normalize_phone("+60 12-345 6789")
        '+60123456789'
    """
    if not phone:
        return ""
    return _PHONE_STRIP.sub("", phone)


def same_plate(a: str | None, b: str | None) -> bool:
    """Two plates match when their normalized forms are equal and non-empty."""
    na = normalize_plate(a)
    return bool(na) and na == normalize_plate(b)


def same_phone(a: str | None, b: str | None) -> bool:
    """Two phones match when their normalized forms are equal and non-empty."""
    na = normalize_phone(a)
    return bool(na) and na == normalize_phone(b)


@dataclass
class QRClassifier:
    """
    Assigns the access class of a visitor pass.

    The class depends only on transport mode and purpose. Unknown
    purposes fall into the non-service column.

    Example:
        >>> classifier = QRClassifier()
        >>> classifier.classify(TransportMode.CAR, "Food Services")
        <QRType.NONE: 'NONE'>
        >>> classifier.classify(TransportMode.NON_CAR, "External Staff")
        <QRType.QR3: 'QR3'>
    """

    SERVICE_OR_PUBLIC: ClassVar[frozenset[str]] = SERVICE_PURPOSES | {PURPOSE_PUBLIC}

    TABLE: ClassVar[dict[tuple[TransportMode, bool], QRType]] = {
        (TransportMode.CAR, True): QRType.NONE,
        (TransportMode.CAR, False): QRType.QR2,
        (TransportMode.NON_CAR, True): QRType.QR1,
        (TransportMode.NON_CAR, False): QRType.QR3,
    }

    def is_service_or_public(self, purpose: str | None) -> bool:
        return purpose in self.SERVICE_OR_PUBLIC

    def classify(self, transport_mode: TransportMode, purpose: str | None) -> QRType:
        return self.TABLE[(TransportMode(transport_mode), self.is_service_or_public(purpose))]


@dataclass
class UniqueCodeGenerator:
    """
    Mints 5-digit visitor codes.

    Codes are drawn uniformly from 10000-99999 and redrawn until they do
    not collide with an existing visitor id.

    Attributes:
        randbelow: Source of randomness, replaceable in tests.
    """

    LOW: ClassVar[int] = 10000
    HIGH: ClassVar[int] = 99999

    randbelow: Callable[[int], int] = field(default=secrets.randbelow)

    def generate(self, existing: Collection[str]) -> str:
        span = self.HIGH - self.LOW + 1
        if len(existing) >= span:
            raise RuntimeError("Visitor code space exhausted")
        while True:
            code = str(self.LOW + self.randbelow(span))
            if code not in existing:
                return code


def _format_span(seconds: int) -> str:
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    if hours >= 1:
        return f"{hours}h {minutes:02d}m"
    return f"{minutes}m {secs:02d}s"


def format_duration(
    entry_at: datetime | None,
    exit_at: datetime | None,
    now: datetime,
) -> str:
    """
    Human-readable time spent inside.

    Example:
        >>> t0 = datetime(2025, 1, 1, 9, 0)
        >>> format_duration(t0, datetime(2025, 1, 1, 10, 5), t0)
        '1h 05m'
        >>> format_duration(t0, None, datetime(2025, 1, 1, 9, 2, 7))
        'In progress (2m 07s)'
    """
    if entry_at is None:
        return "Not available"
    end = exit_at or now
    if end < entry_at:
        return "Not available"
    text = _format_span(int((end - entry_at).total_seconds()))
    if exit_at is None:
        return f"In progress ({text})"
    return text


def is_overstaying(visitor: Visitor, now: datetime) -> bool:
    """Entered, not exited, and the visit window already ended."""
    return (
        visitor.time_in is not None
        and visitor.time_out is None
        and visitor.end_date is not None
        and visitor.end_date < now
    )
