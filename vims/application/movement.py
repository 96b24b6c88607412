"""
Entry/exit bookkeeping for visitors, VIPs and scanned plates.
"""

from datetime import datetime

from vims.application.store import Store
from vims.core.logging import get_logger
from vims.domain.errors import NotFoundError
from vims.domain.models import (
    LprMode,
    LprScanRecord,
    ScanKnownStatus,
    ScanOutcome,
    Visitor,
    VipRecord,
)
from vims.domain.services import normalize_plate

logger = get_logger(__name__)


class MovementTracker:
    """
    Records movement on the Store.

    Visitor ``time_in`` is written once; ``time_out`` always takes the
    latest exit. Plate scan records keep one row per normalized plate.
    """

    def __init__(self, store: Store):
        self._store = store

    def _visitor(self, visitor_id: str) -> Visitor:
        visitor = self._store.visitors.get(visitor_id)
        if visitor is None:
            raise NotFoundError("Visitor", visitor_id)
        return visitor

    def record_entry(self, visitor_id: str, ts: datetime) -> Visitor:
        visitor = self._visitor(visitor_id)
        if visitor.time_in is None:
            visitor.time_in = ts
            self._store.save_visitor(visitor)
        return visitor

    def record_exit(self, visitor_id: str, ts: datetime) -> Visitor:
        visitor = self._visitor(visitor_id)
        visitor.time_out = ts
        self._store.save_visitor(visitor)
        return visitor

    def record_vip(self, vip: VipRecord, mode: LprMode, ts: datetime) -> VipRecord:
        if mode == LprMode.ENTRY:
            vip.last_entry_time = ts
        else:
            vip.last_exit_time = ts
        return self._store.save_vip(vip)

    def upsert_scan_record(
        self,
        plate: str,
        mode: LprMode,
        known: bool,
        outcome: ScanOutcome,
        reason: str | None,
        attempted_only: bool,
        ts: datetime,
    ) -> LprScanRecord:
        """
        Merge one plate event into the plate's scan history.

        A plate once KNOWN stays KNOWN. Attempted-only events touch
        ``attempted_at`` and leave entry/exit times alone.
        """
        key = normalize_plate(plate)
        record = self._store.scan_records.get(key)
        if record is None:
            record = LprScanRecord(
                plate=key,
                status=ScanKnownStatus.UNKNOWN,
                last_seen_at=ts,
            )

        if known:
            record.status = ScanKnownStatus.KNOWN
        if attempted_only:
            record.attempted_at = ts
        elif mode == LprMode.ENTRY:
            if record.entry_at is None:
                record.entry_at = ts
        else:
            record.exit_at = ts

        record.outcome = outcome
        record.reason = reason
        record.gate = mode
        record.last_seen_at = ts
        return self._store.save_scan_record(record)
