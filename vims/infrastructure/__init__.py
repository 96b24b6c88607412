"""Infrastructure layer package."""

from vims.infrastructure.db import (
    DocumentRepository,
    close_db,
    get_session_factory,
    init_db,
)
from vims.infrastructure.ml import (
    CameraSource,
    EasyOCREngine,
    IdCardReader,
    OCRError,
    PlateReader,
)
from vims.infrastructure.notify import EmailMessage, EmailNotifier
from vims.infrastructure.persistence import PersistenceMirror

__all__ = [
    # Database
    "get_session_factory",
    "init_db",
    "close_db",
    "DocumentRepository",
    # Persistence mirror
    "PersistenceMirror",
    # ML
    "EasyOCREngine",
    "IdCardReader",
    "PlateReader",
    "CameraSource",
    "OCRError",
    # E-mail
    "EmailMessage",
    "EmailNotifier",
]
