"""
Domain models for the Visitor Management System.

These are pure domain objects with no infrastructure dependencies.
They represent visitors, the three access registries (blacklist, VIP,
visitor), checkpoint profiles and the audit trail of every decision.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import ClassVar, Union


class VisitorType(str, Enum):
    """How the visitor entered the system."""

    ADHOC = "ADHOC"
    PREREGISTERED = "PREREGISTERED"


class TransportMode(str, Enum):
    """Whether the visitor arrives by car."""

    CAR = "CAR"
    NON_CAR = "NON_CAR"


class VisitorStatus(str, Enum):
    """Approval state of a visitor request."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class QRType(str, Enum):
    """
    Access class encoded in a visitor pass.

    QR1: front gate only (pedestrian service/public visitors).
    QR2: elevator only (cars parked by pre-registered guests).
    QR3: front gate and elevator.
    NONE: no QR issued; the vehicle is admitted by LPR only.
    """

    QR1 = "QR1"
    QR2 = "QR2"
    QR3 = "QR3"
    NONE = "NONE"


class UserRole(str, Enum):
    """Role of a staff account."""

    ADMIN = "ADMIN"
    STAFF = "STAFF"
    LPR_READER = "LPR_READER"


class VipType(str, Enum):
    VVIP = "VVIP"
    VIP = "VIP"


class BlacklistStatus(str, Enum):
    ACTIVE = "ACTIVE"
    UNBANNED = "UNBANNED"


class VipStatus(str, Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    DEACTIVATED = "DEACTIVATED"


class Location(str, Enum):
    """Where an access event happened."""

    FRONT_GATE = "FRONT_GATE"
    ELEVATOR = "ELEVATOR"
    SYSTEM = "SYSTEM"


class ScanMethod(str, Enum):
    """How the subject was identified."""

    QR = "QR"
    LPR = "LPR"
    MANUAL = "MANUAL"
    SYSTEM = "SYSTEM"


class AccessAction(str, Enum):
    ENTRY = "ENTRY"
    EXIT = "EXIT"
    DENIED = "DENIED"
    MANUAL_OVERRIDE = "MANUAL_OVERRIDE"
    VIP_UPDATE = "VIP_UPDATE"


class LprMode(str, Enum):
    """Direction pre-selected on an LPR terminal."""

    ENTRY = "ENTRY"
    EXIT = "EXIT"


class LprStatus(str, Enum):
    """Outcome shown on an LPR event log."""

    APPROVED = "Approved"
    REJECTED = "Rejected"
    PENDING = "Pending"
    BLACKLISTED = "Blacklisted"
    UNKNOWN = "Unknown"


class ScanKnownStatus(str, Enum):
    KNOWN = "KNOWN"
    UNKNOWN = "UNKNOWN"


class ScanOutcome(str, Enum):
    PASSED = "PASSED"
    BLOCKED = "BLOCKED"
    HOLD = "HOLD"
    UNKNOWN = "UNKNOWN"


class Decision(str, Enum):
    """Gate action produced by the access decision engine."""

    ALLOW = "ALLOW"
    DENY = "DENY"


class LookupKind(str, Enum):
    """Which visitor index a scan resolves against."""

    PLATE = "PLATE"
    CODE = "CODE"


# Purpose catalog
PURPOSE_E_HAILING = "E-Hailing (Driver)"
PURPOSE_FOOD = "Food Services"
PURPOSE_COURIER = "Courier Services"
PURPOSE_GARBAGE = "Garbage Truck Services"
PURPOSE_SAFEGUARD = "Safeguard"
PURPOSE_PUBLIC = "Public"
PURPOSE_TNB_STAFF = "External TNB Staff"
PURPOSE_EXTERNAL_STAFF = "External Staff"

PURPOSES = (
    PURPOSE_E_HAILING,
    PURPOSE_FOOD,
    PURPOSE_COURIER,
    PURPOSE_GARBAGE,
    PURPOSE_SAFEGUARD,
    PURPOSE_PUBLIC,
    PURPOSE_TNB_STAFF,
    PURPOSE_EXTERNAL_STAFF,
)

SERVICE_PURPOSES = frozenset(
    {PURPOSE_E_HAILING, PURPOSE_FOOD, PURPOSE_COURIER, PURPOSE_GARBAGE, PURPOSE_SAFEGUARD}
)
STAFF_PURPOSES = frozenset({PURPOSE_TNB_STAFF, PURPOSE_EXTERNAL_STAFF})

SPECIFIED_LOCATIONS = ("Balai Islam", "Taska", "Fasiliti Sukan", "Ruang Komuniti")

VIP_DESIGNATION_OTHER = "Other (Specify)"
VIP_DESIGNATIONS = (
    "Head of State / Royal",
    "Minister",
    "Deputy Minister",
    "Secretary-General",
    "Director-General",
    "Chief Executive Officer (CEO)",
    "Chief Operating Officer (COO)",
    "Chief Financial Officer (CFO)",
    "Chief Information Officer (CIO)",
    "Board Chairman",
    "Board Member",
    "Senior Advisor",
    "Ambassador / High Commissioner",
    "Chief of Police / Armed Forces Representative",
    "State Director",
    "General Manager",
    "Senior Manager",
    "Project Director",
    "VIP Guest (General)",
    VIP_DESIGNATION_OTHER,
)

REGISTERED_BY_SELF = "SELF"
MANUAL_VISITOR_ID = "MANUAL"
UNIDENTIFIED = "UNIDENTIFIED"


@dataclass
class Visitor:
    """
    A visit request and its movement state.

    The 5-digit ``id`` doubles as the QR payload and the status-check
    lookup key. ``qr_type`` is derived from transport mode and purpose
    and is never set independently.
    """

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
    created_at: datetime
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
    rejection_reason: str | None = None
    time_in: datetime | None = None
    time_out: datetime | None = None
    registered_by: str = REGISTERED_BY_SELF

    @property
    def is_inside(self) -> bool:
        """Entered and not yet exited."""
        return self.time_in is not None and self.time_out is None


@dataclass
class BlacklistRecord:
    """A ban keyed by IC number, license plate and/or phone."""

    id: str
    reason: str
    created_by: str
    timestamp: datetime
    name: str | None = None
    ic_number: str | None = None
    license_plate: str | None = None
    phone: str | None = None
    status: BlacklistStatus = BlacklistStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == BlacklistStatus.ACTIVE


@dataclass
class VipRecord:
    """Standing priority-access profile keyed by license plate."""

    id: str
    vip_type: VipType
    designation: str
    name: str
    contact: str
    license_plate: str
    valid_from: datetime
    valid_until: datetime
    reason: str
    created_by: str
    created_at: datetime
    custom_designation: str | None = None
    ic_number: str | None = None
    vehicle_color: str | None = None
    auto_approve: bool = True
    auto_open_gate: bool = True
    access_points: list[str] = field(default_factory=lambda: ["ENTRY_LPR", "EXIT_LPR"])
    attachment: str | None = None
    status: VipStatus = VipStatus.ACTIVE
    last_entry_time: datetime | None = None
    last_exit_time: datetime | None = None
    updated_by: str | None = None
    updated_at: datetime | None = None

    def is_valid_at(self, now: datetime) -> bool:
        """Active and ``now`` within ``[valid_from, valid_until]``."""
        return (
            self.status == VipStatus.ACTIVE
            and self.valid_from <= now <= self.valid_until
        )

    @property
    def display_designation(self) -> str:
        if self.designation == VIP_DESIGNATION_OTHER and self.custom_designation:
            return self.custom_designation
        return self.designation

    @property
    def is_inside(self) -> bool:
        if self.last_entry_time is None:
            return False
        return self.last_exit_time is None or self.last_entry_time > self.last_exit_time


@dataclass(frozen=True)
class AccessLog:
    """Immutable checkpoint event."""

    id: str
    visitor_id: str
    visitor_name: str
    action: AccessAction
    location: Location
    method: ScanMethod
    timestamp: datetime
    details: str | None = None


@dataclass(frozen=True)
class LprLog:
    """Immutable record of one plate-recognition event."""

    id: str
    plate: str
    status: LprStatus
    mode: LprMode
    timestamp: datetime
    confidence: float = 0.0
    thumbnail: str = ""
    vehicle_color: str | None = None
    visitor_id: str | None = None
    is_vip: bool = False
    vip_type: VipType | None = None
    designation: str | None = None
    requestor_name: str = UNIDENTIFIED
    phone_number: str = "N/A"


@dataclass
class LprScanRecord:
    """Latest known/unknown and entry/exit state of one normalised plate."""

    plate: str
    status: ScanKnownStatus
    last_seen_at: datetime
    outcome: ScanOutcome = ScanOutcome.UNKNOWN
    gate: LprMode = LprMode.ENTRY
    entry_at: datetime | None = None
    exit_at: datetime | None = None
    attempted_at: datetime | None = None
    reason: str | None = None


@dataclass
class Notification:
    """In-app message to the staff member who registered a visitor."""

    id: str
    recipient: str
    message: str
    visitor_id: str
    status: VisitorStatus
    timestamp: datetime
    read: bool = False


@dataclass(frozen=True)
class CheckpointProfile:
    """
    Capability profile of a physical access point.

    Profiles are fixed configuration: the front gate admits QR1/QR3
    passes and plates, the elevator admits QR2/QR3 passes only.
    """

    name: str
    location: Location
    allowed_qr_types: frozenset[QRType]
    allow_lpr: bool


FRONT_GATE = CheckpointProfile(
    name="Main Entrance",
    location=Location.FRONT_GATE,
    allowed_qr_types=frozenset({QRType.QR1, QRType.QR3}),
    allow_lpr=True,
)
ELEVATOR = CheckpointProfile(
    name="Service Lift",
    location=Location.ELEVATOR,
    allowed_qr_types=frozenset({QRType.QR2, QRType.QR3}),
    allow_lpr=False,
)
CHECKPOINTS: dict[Location, CheckpointProfile] = {
    Location.FRONT_GATE: FRONT_GATE,
    Location.ELEVATOR: ELEVATOR,
}


@dataclass(frozen=True)
class IdentifierBundle:
    """Identifiers supplied by a scan or a registration form."""

    ic_number: str | None = None
    plate: str | None = None
    phone: str | None = None
    code: str | None = None


@dataclass(frozen=True)
class Blacklisted:
    record: BlacklistRecord
    reasons: tuple[str, ...] = ()

    tag: ClassVar[str] = "BLACKLISTED"


@dataclass(frozen=True)
class Vip:
    record: VipRecord
    reasons: tuple[str, ...] = ()

    tag: ClassVar[str] = "VIP"


@dataclass(frozen=True)
class VisitorMatch:
    record: Visitor
    reasons: tuple[str, ...] = ()

    tag: ClassVar[str] = "VISITOR"


@dataclass(frozen=True)
class Unknown:
    reasons: tuple[str, ...] = ()

    tag: ClassVar[str] = "UNKNOWN"


MatchResult = Union[Blacklisted, Vip, VisitorMatch, Unknown]


@dataclass(frozen=True)
class AccessDecision:
    """
    Result of evaluating one scan at one checkpoint.

    Attributes:
        decision: ALLOW or DENY.
        reason: Human-readable explanation shown to the guard.
        lpr_status: Status recorded on the LPR event log.
        scan_outcome: Outcome recorded on the plate scan-history record.
        log_details: Details stored on the access log entry.
    """

    decision: Decision
    reason: str
    lpr_status: LprStatus
    scan_outcome: ScanOutcome
    log_details: str | None = None

    @property
    def allowed(self) -> bool:
        return self.decision == Decision.ALLOW


@dataclass(frozen=True)
class ScanResult:
    """Everything a checkpoint terminal needs after a scan."""

    decision: AccessDecision
    match: MatchResult
    access_log: AccessLog
    lpr_log: LprLog | None = None
    scan_record: LprScanRecord | None = None

    @property
    def allowed(self) -> bool:
        return self.decision.allowed
