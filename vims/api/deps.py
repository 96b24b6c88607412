"""
FastAPI dependencies for dependency injection.

Provides the use case instances held on ``app.state`` and the
authentication dependencies for route handlers.
"""

from typing import Annotated

from fastapi import Depends, Request

from vims.application.blacklist import BlacklistService
from vims.application.checkpoint import AccessControlService
from vims.application.container import Services
from vims.application.dashboard import DashboardService
from vims.application.lpr import LprService
from vims.application.notifications import NotificationService
from vims.application.registration import RegistrationService
from vims.application.vip import VipService
from vims.core.security import (
    User,
    check_rate_limit,
    get_current_user,
    get_lpr_principal,
    require_roles,
)
from vims.domain.models import UserRole


def get_services(request: Request) -> Services:
    """
    Dependency to get the process-wide service container.

    Returns:
        Services: Container built during application startup.
    """
    return request.app.state.services


Container = Annotated[Services, Depends(get_services)]


def get_registration(services: Container) -> RegistrationService:
    return services.registration


def get_access(services: Container) -> AccessControlService:
    return services.access


def get_lpr(services: Container) -> LprService:
    return services.lpr


def get_blacklist(services: Container) -> BlacklistService:
    return services.blacklist


def get_vips(services: Container) -> VipService:
    return services.vips


def get_notifications(services: Container) -> NotificationService:
    return services.notifications


def get_dashboard(services: Container) -> DashboardService:
    return services.dashboard


# Type aliases for cleaner route signatures
CurrentUser = Annotated[User, Depends(get_current_user)]
AdminUser = Annotated[User, Depends(require_roles(UserRole.ADMIN))]
StaffUser = Annotated[User, Depends(require_roles(UserRole.STAFF, UserRole.ADMIN))]
LprPrincipal = Annotated[User, Depends(get_lpr_principal)]
RateLimited = Annotated[None, Depends(check_rate_limit)]

# Type aliases for use case dependencies
Registration = Annotated[RegistrationService, Depends(get_registration)]
AccessControl = Annotated[AccessControlService, Depends(get_access)]
Lpr = Annotated[LprService, Depends(get_lpr)]
Blacklist = Annotated[BlacklistService, Depends(get_blacklist)]
Vips = Annotated[VipService, Depends(get_vips)]
Notifications = Annotated[NotificationService, Depends(get_notifications)]
Dashboard = Annotated[DashboardService, Depends(get_dashboard)]
