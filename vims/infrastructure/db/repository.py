"""
Repository for the mirrored document collections.

Abstracts the documents table behind the four operations the Store
needs: load a collection, write a document, patch a document, and
clear a collection.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from vims.infrastructure.db.models import DocumentDB


class DocumentRepository:
    """
    Key-value access to the documents table.

    Example:
        repo = DocumentRepository(session)
        await repo.set("visitors", "48213", {"id": "48213", ...})
        docs = await repo.get_all("visitors")
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self._session = session

    async def get_all(self, collection: str) -> list[dict[str, Any]]:
        """
        Load every document of a collection, oldest write first.

        Args:
            collection: Collection name.

        Returns:
            list: Document payloads.
        """
        stmt = (
            select(DocumentDB)
            .where(DocumentDB.collection == collection)
            .order_by(DocumentDB.updated_at, DocumentDB.doc_id)
        )
        result = await self._session.execute(stmt)
        return [dict(row.payload) for row in result.scalars().all()]

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        row = await self._session.get(DocumentDB, (collection, doc_id))
        return dict(row.payload) if row is not None else None

    async def set(self, collection: str, doc_id: str, payload: dict[str, Any]) -> None:
        """
        Create or replace a document.

        Args:
            collection: Collection name.
            doc_id: Document key within the collection.
            payload: JSON-compatible document body.
        """
        row = await self._session.get(DocumentDB, (collection, doc_id))
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        if row is None:
            self._session.add(
                DocumentDB(
                    collection=collection,
                    doc_id=doc_id,
                    payload=payload,
                    updated_at=now,
                )
            )
        else:
            row.payload = payload
            row.updated_at = now
        await self._session.flush()

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> bool:
        """
        Merge fields into an existing document.

        Returns:
            bool: True if the document existed and was updated.
        """
        row = await self._session.get(DocumentDB, (collection, doc_id))
        if row is None:
            return False
        row.payload = {**row.payload, **fields}
        row.updated_at = datetime.now(timezone.utc).replace(tzinfo=None)
        await self._session.flush()
        return True

    async def delete_all(self, collection: str) -> int:
        """
        Remove every document of a collection.

        Returns:
            int: Number of documents deleted.
        """
        stmt = delete(DocumentDB).where(DocumentDB.collection == collection)
        result = await self._session.execute(stmt)
        return result.rowcount or 0
