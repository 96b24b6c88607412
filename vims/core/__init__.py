"""Core configuration and utilities package."""

from vims.core.config import Settings, get_settings
from vims.core.logging import get_logger, set_correlation_id, setup_logging
from vims.core.security import (
    User,
    authenticate,
    check_rate_limit,
    create_access_token,
    create_user_token,
    get_current_user,
    get_lpr_principal,
    require_roles,
    verify_api_key,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Logging
    "get_logger",
    "set_correlation_id",
    "setup_logging",
    # Security
    "User",
    "authenticate",
    "check_rate_limit",
    "create_access_token",
    "create_user_token",
    "get_current_user",
    "get_lpr_principal",
    "require_roles",
    "verify_api_key",
]
