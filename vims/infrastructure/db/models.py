"""
SQLAlchemy ORM models for the persistence mirror.

The in-memory Store is the source of truth; every record it owns is
mirrored here as a JSON document keyed by collection and document id.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class DocumentDB(Base):
    """
    One mirrored record.

    ``payload`` holds the JSON form of the domain dataclass. Writes
    replace the whole document; there is no schema per collection.
    """

    __tablename__ = "documents"

    collection: Mapped[str] = mapped_column(String(50), primary_key=True)
    doc_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_documents_collection_updated", "collection", "updated_at"),
    )

    def __repr__(self) -> str:
        return f"<Document(collection={self.collection}, id={self.doc_id})>"
