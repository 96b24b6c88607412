"""Domain layer package - business rules and core models."""

from vims.domain.access import AccessDecisionEngine, RegistryMatcher, find_blacklisted
from vims.domain.errors import (
    BlacklistedError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
    VimsError,
)
from vims.domain.models import (
    AccessDecision,
    AccessLog,
    BlacklistRecord,
    CheckpointProfile,
    IdentifierBundle,
    LprLog,
    LprScanRecord,
    MatchResult,
    Notification,
    QRType,
    VipRecord,
    Visitor,
)
from vims.domain.policies import PurposeDurationPolicy, RegistrationValidator, VisitorRegistration
from vims.domain.services import (
    QRClassifier,
    UniqueCodeGenerator,
    format_duration,
    normalize_phone,
    normalize_plate,
)

__all__ = [
    # Models
    "AccessDecision",
    "AccessLog",
    "BlacklistRecord",
    "CheckpointProfile",
    "IdentifierBundle",
    "LprLog",
    "LprScanRecord",
    "MatchResult",
    "Notification",
    "QRType",
    "VipRecord",
    "Visitor",
    "VisitorRegistration",
    # Errors
    "BlacklistedError",
    "InvalidTransitionError",
    "NotFoundError",
    "ValidationError",
    "VimsError",
    # Services
    "AccessDecisionEngine",
    "PurposeDurationPolicy",
    "QRClassifier",
    "RegistrationValidator",
    "RegistryMatcher",
    "UniqueCodeGenerator",
    "find_blacklisted",
    "format_duration",
    "normalize_phone",
    "normalize_plate",
]
