"""
In-memory record store.

The Store owns every visitor, registry record, log and notification for
the lifetime of the process. Writes are synchronous and mirrored to the
persistence worker as one-way messages; the Store never waits on them.
"""

import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Protocol
from zoneinfo import ZoneInfo

from pydantic import TypeAdapter

from vims.core.logging import get_logger
from vims.domain.models import (
    AccessLog,
    BlacklistRecord,
    LprLog,
    LprScanRecord,
    Notification,
    VipRecord,
    Visitor,
)

logger = get_logger(__name__)


class Collection(str, Enum):
    VISITORS = "visitors"
    BLACKLIST = "blacklist"
    VIPS = "vips"
    ACCESS_LOGS = "access_logs"
    LPR_LOGS = "lpr_logs"
    LPR_SCANS = "lpr_scans"
    NOTIFICATIONS = "notifications"


ADAPTERS: dict[Collection, TypeAdapter] = {
    Collection.VISITORS: TypeAdapter(Visitor),
    Collection.BLACKLIST: TypeAdapter(BlacklistRecord),
    Collection.VIPS: TypeAdapter(VipRecord),
    Collection.ACCESS_LOGS: TypeAdapter(AccessLog),
    Collection.LPR_LOGS: TypeAdapter(LprLog),
    Collection.LPR_SCANS: TypeAdapter(LprScanRecord),
    Collection.NOTIFICATIONS: TypeAdapter(Notification),
}


class MirrorOp(str, Enum):
    SET = "set"
    UPDATE = "update"
    DELETE_ALL = "delete_all"


@dataclass(frozen=True)
class MirrorWrite:
    """One queued write against a collection."""

    op: MirrorOp
    collection: str
    doc_id: str | None = None
    payload: dict[str, Any] | None = None


class Mirror(Protocol):
    def submit(self, write: MirrorWrite) -> None: ...


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class Store:
    """
    Source of truth for all records.

    Attributes:
        visitors: Visitors by 5-digit code.
        blacklist: Blacklist records by id.
        vips: VIP records by id.
        scan_records: LPR scan history by normalized plate.
        notifications: Staff notifications by id.
        access_logs: Checkpoint events in append order.
        lpr_logs: Plate events in append order.
    """

    def __init__(
        self,
        mirror: Mirror | None = None,
        timezone: str = "UTC",
        clock: Callable[[], datetime] | None = None,
    ):
        self.tz = ZoneInfo(timezone)
        self._clock = clock or (lambda: datetime.now(self.tz))
        self._mirror = mirror

        self.visitors: dict[str, Visitor] = {}
        self.blacklist: dict[str, BlacklistRecord] = {}
        self.vips: dict[str, VipRecord] = {}
        self.scan_records: dict[str, LprScanRecord] = {}
        self.notifications: dict[str, Notification] = {}
        self.access_logs: list[AccessLog] = []
        self.lpr_logs: list[LprLog] = []

    def now(self) -> datetime:
        return self._clock()

    # Writes

    def save_visitor(self, visitor: Visitor) -> Visitor:
        self.visitors[visitor.id] = visitor
        self._mirror_set(Collection.VISITORS, visitor.id, visitor)
        return visitor

    def save_blacklist(self, record: BlacklistRecord) -> BlacklistRecord:
        self.blacklist[record.id] = record
        self._mirror_set(Collection.BLACKLIST, record.id, record)
        return record

    def save_vip(self, record: VipRecord) -> VipRecord:
        self.vips[record.id] = record
        self._mirror_set(Collection.VIPS, record.id, record)
        return record

    def save_scan_record(self, record: LprScanRecord) -> LprScanRecord:
        self.scan_records[record.plate] = record
        self._mirror_set(Collection.LPR_SCANS, record.plate, record)
        return record

    def save_notification(self, notification: Notification) -> Notification:
        self.notifications[notification.id] = notification
        self._mirror_set(Collection.NOTIFICATIONS, notification.id, notification)
        return notification

    def mark_notification_read(self, notification: Notification) -> Notification:
        notification.read = True
        self._mirror_update(Collection.NOTIFICATIONS, notification.id, {"read": True})
        return notification

    def append_access_log(self, log: AccessLog) -> AccessLog:
        self.access_logs.append(log)
        self._mirror_set(Collection.ACCESS_LOGS, log.id, log)
        return log

    def append_lpr_log(self, log: LprLog) -> LprLog:
        self.lpr_logs.append(log)
        self._mirror_set(Collection.LPR_LOGS, log.id, log)
        return log

    def clear_lpr_logs(self) -> int:
        count = len(self.lpr_logs)
        self.lpr_logs.clear()
        if self._mirror is not None:
            self._mirror.submit(MirrorWrite(MirrorOp.DELETE_ALL, Collection.LPR_LOGS.value))
        logger.info("lpr_logs_cleared", count=count)
        return count

    # Reads

    def access_logs_newest_first(self) -> list[AccessLog]:
        return list(reversed(self.access_logs))

    def lpr_logs_newest_first(self) -> list[LprLog]:
        return list(reversed(self.lpr_logs))

    # Persistence

    def _mirror_set(self, collection: Collection, doc_id: str, record: Any) -> None:
        if self._mirror is None:
            return
        payload = ADAPTERS[collection].dump_python(record, mode="json")
        self._mirror.submit(MirrorWrite(MirrorOp.SET, collection.value, doc_id, payload))

    def _mirror_update(self, collection: Collection, doc_id: str, fields: dict[str, Any]) -> None:
        if self._mirror is not None:
            self._mirror.submit(MirrorWrite(MirrorOp.UPDATE, collection.value, doc_id, fields))

    async def hydrate(self, load: Callable[[str], Awaitable[list[dict[str, Any]]]]) -> dict[str, int]:
        """
        Replace in-memory contents with every mirrored collection.

        Documents that no longer validate are skipped and logged.

        Returns:
            dict: Loaded document count per collection.
        """
        counts: dict[str, int] = {}
        for collection in Collection:
            adapter = ADAPTERS[collection]
            records = []
            for doc in await load(collection.value):
                try:
                    records.append(adapter.validate_python(doc))
                except ValueError as e:
                    logger.warning(
                        "hydrate_document_skipped",
                        collection=collection.value,
                        error=str(e),
                    )
            self._install(collection, records)
            counts[collection.value] = len(records)
        logger.info("store_hydrated", **counts)
        return counts

    def _install(self, collection: Collection, records: list) -> None:
        if collection == Collection.VISITORS:
            self.visitors = {r.id: r for r in records}
        elif collection == Collection.BLACKLIST:
            self.blacklist = {r.id: r for r in records}
        elif collection == Collection.VIPS:
            self.vips = {r.id: r for r in records}
        elif collection == Collection.LPR_SCANS:
            self.scan_records = {r.plate: r for r in records}
        elif collection == Collection.NOTIFICATIONS:
            self.notifications = {r.id: r for r in records}
        elif collection == Collection.ACCESS_LOGS:
            self.access_logs = sorted(records, key=lambda r: r.timestamp)
        else:
            self.lpr_logs = sorted(records, key=lambda r: r.timestamp)
