"""Database infrastructure package."""

from vims.infrastructure.db.models import Base, DocumentDB
from vims.infrastructure.db.repository import DocumentRepository
from vims.infrastructure.db.session import (
    close_db,
    create_test_engine,
    get_session_factory,
    init_db,
    make_session_factory,
    session_scope,
)

__all__ = [
    # Models
    "Base",
    "DocumentDB",
    # Repositories
    "DocumentRepository",
    # Session
    "close_db",
    "create_test_engine",
    "get_session_factory",
    "init_db",
    "make_session_factory",
    "session_scope",
]
