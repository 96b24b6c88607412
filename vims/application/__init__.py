"""Application layer package - use cases and services."""

from vims.application.blacklist import BlacklistService
from vims.application.checkpoint import AccessControlService
from vims.application.container import Services, build_services
from vims.application.dashboard import DashboardService
from vims.application.lpr import DuplicateSuppressor, LprAutoScanner, LprService
from vims.application.movement import MovementTracker
from vims.application.notifications import NotificationService
from vims.application.registration import RegistrationService
from vims.application.store import Store
from vims.application.vip import VipForm, VipService

__all__ = [
    "AccessControlService",
    "BlacklistService",
    "DashboardService",
    "DuplicateSuppressor",
    "LprAutoScanner",
    "LprService",
    "MovementTracker",
    "NotificationService",
    "RegistrationService",
    "Services",
    "Store",
    "VipForm",
    "VipService",
    "build_services",
]
