"""
Structured logging configuration with correlation ID support.

JSON logs in production, colored console logs in development. Every
HTTP request (and every background LPR detection) carries a correlation
ID so a scan can be followed through decision, mirror and notification.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any

import structlog
from structlog.types import Processor

from vims.core.config import get_settings

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

NOISY_LOGGERS = ("uvicorn", "uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore")

# Event keys holding personal identifiers; values are masked before rendering.
PERSONAL_KEYS = frozenset({"ic_number", "phone", "contact", "to"})


def get_correlation_id() -> str:
    """Return the correlation ID bound to the current context."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """
    Bind a correlation ID to the current context.

    Args:
        correlation_id: Existing ID (e.g. from a request header). A new UUID
            is generated when omitted.

    Returns:
        str: The correlation ID that was bound.
    """
    cid = correlation_id or str(uuid.uuid4())
    correlation_id_var.set(cid)
    return cid


def add_correlation_id(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Structlog processor adding the correlation ID to every event."""
    correlation_id = get_correlation_id()
    if correlation_id:
        event_dict["correlation_id"] = correlation_id
    return event_dict


def drop_color_message_key(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Remove the color_message key uvicorn attaches to its records."""
    event_dict.pop("color_message", None)
    return event_dict


def mask_value(value: Any) -> Any:
    """
    Keep only the last four characters of an identifier.

    Example:
        >>> mask_value("900101-14-5678")
        '**********5678'
    """
    if not isinstance(value, str) or len(value) <= 4:
        return value
    return "*" * (len(value) - 4) + value[-4:]


def mask_personal_data(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Structlog processor masking IC numbers, phones and e-mail recipients."""
    for key in PERSONAL_KEYS.intersection(event_dict):
        event_dict[key] = mask_value(event_dict[key])
    return event_dict


def setup_logging() -> None:
    """
    Configure structlog and the standard library root logger.

    Safe to call more than once; the last call wins.
    """
    settings = get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    common_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        add_correlation_id,
        drop_color_message_key,
        mask_personal_data,
    ]

    if settings.log_format == "json":
        processors: list[Processor] = [
            *common_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *common_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("visitor_registered", visitor_id="48213", qr_type="QR3")
    """
    return structlog.get_logger(name)
