"""
Background persistence mirror.

The Store submits one-way write messages; a single asyncio task applies
them to the documents table in order. Failed writes are logged and
dropped, never retried or rolled back into the Store.
"""

import asyncio
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vims.application.store import MirrorOp, MirrorWrite
from vims.core.logging import get_logger
from vims.infrastructure.db.repository import DocumentRepository
from vims.infrastructure.db.session import session_scope

logger = get_logger(__name__)


class PersistenceMirror:
    """
    Queue-fed writer for the documents table.

    Example:
        mirror = PersistenceMirror(get_session_factory())
        await mirror.start()
        mirror.submit(MirrorWrite(MirrorOp.SET, "visitors", "48213", doc))
        await mirror.stop()
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_queue: int = 10_000,
    ):
        self._session_factory = session_factory
        self._queue: asyncio.Queue[MirrorWrite] = asyncio.Queue(maxsize=max_queue)
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def submit(self, write: MirrorWrite) -> None:
        """Enqueue a write without waiting for it."""
        try:
            self._queue.put_nowait(write)
        except asyncio.QueueFull:
            logger.error(
                "mirror_queue_full",
                op=write.op.value,
                collection=write.collection,
                doc_id=write.doc_id,
            )

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="persistence-mirror")
        logger.info("mirror_started")

    async def stop(self, drain_timeout: float = 5.0) -> None:
        """Flush pending writes (bounded by ``drain_timeout``) and stop the worker."""
        if self._task is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=drain_timeout)
        except asyncio.TimeoutError:
            logger.warning("mirror_drain_timeout", pending=self._queue.qsize())
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("mirror_stopped")

    async def flush(self) -> None:
        """Wait until every submitted write has been applied or dropped."""
        await self._queue.join()

    async def load(self, collection: str) -> list[dict[str, Any]]:
        """Read a whole collection for hydration."""
        async with session_scope(self._session_factory) as session:
            return await DocumentRepository(session).get_all(collection)

    async def _run(self) -> None:
        while True:
            write = await self._queue.get()
            try:
                await self._apply(write)
            except Exception as e:
                logger.error(
                    "mirror_write_failed",
                    op=write.op.value,
                    collection=write.collection,
                    doc_id=write.doc_id,
                    error=str(e),
                )
            finally:
                self._queue.task_done()

    async def _apply(self, write: MirrorWrite) -> None:
        async with session_scope(self._session_factory) as session:
            repo = DocumentRepository(session)
            if write.op == MirrorOp.SET:
                await repo.set(write.collection, write.doc_id, write.payload or {})
            elif write.op == MirrorOp.UPDATE:
                found = await repo.update(write.collection, write.doc_id, write.payload or {})
                if not found:
                    logger.warning(
                        "mirror_update_missing",
                        collection=write.collection,
                        doc_id=write.doc_id,
                    )
            else:
                deleted = await repo.delete_all(write.collection)
                logger.info("mirror_collection_cleared", collection=write.collection, deleted=deleted)
