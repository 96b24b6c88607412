"""
Operations dashboard.

Counts of visitor requests and the live list of everyone currently on
the premises: visitors checked in, VIPs whose last movement was an
entry, and plates the LPR camera let in without a matching record.
Entries are merged by normalized plate so one car appears once.
"""

from dataclasses import dataclass
from datetime import datetime

from vims.application.store import Store
from vims.domain.models import UNIDENTIFIED, ScanOutcome, TransportMode, VisitorStatus
from vims.domain.services import format_duration, is_overstaying, normalize_plate


@dataclass(frozen=True)
class DashboardCounts:
    pending: int
    approved: int
    rejected: int
    total: int
    inside: int


@dataclass
class OngoingEntry:
    id: str
    kind: str
    name: str
    type: str
    plate: str | None
    transport: TransportMode
    entry_at: datetime | None
    is_vip: bool
    overstaying: bool
    duration: str = ""


class DashboardService:
    def __init__(self, store: Store):
        self._store = store

    def now(self) -> datetime:
        return self._store.now()

    def ongoing(self, now: datetime | None = None) -> list[OngoingEntry]:
        """Everyone inside, most recent entry first."""
        now = now or self._store.now()
        scans = self._store.scan_records
        merged: dict[str, OngoingEntry] = {}

        for visitor in self._store.visitors.values():
            if not visitor.is_inside:
                continue
            plate = normalize_plate(visitor.license_plate)
            scan = scans.get(plate) if plate else None
            merged[plate or visitor.id] = OngoingEntry(
                id=visitor.id,
                kind="VISITOR",
                name=visitor.name,
                type="VISITOR",
                plate=visitor.license_plate,
                transport=visitor.transport_mode,
                entry_at=(scan.entry_at if scan else None) or visitor.time_in,
                is_vip=False,
                overstaying=is_overstaying(visitor, now),
            )

        for vip in self._store.vips.values():
            if not vip.is_inside:
                continue
            plate = normalize_plate(vip.license_plate)
            scan = scans.get(plate) if plate else None
            merged[plate or vip.id] = OngoingEntry(
                id=vip.id,
                kind="VISITOR",
                name=vip.name,
                type=vip.vip_type.value,
                plate=vip.license_plate,
                transport=TransportMode.CAR,
                entry_at=(scan.entry_at if scan else None) or vip.last_entry_time,
                is_vip=True,
                overstaying=False,
            )

        for scan in scans.values():
            if scan.entry_at is None or scan.exit_at is not None or scan.outcome == ScanOutcome.BLOCKED:
                continue
            existing = merged.get(scan.plate)
            if existing is not None:
                existing.entry_at = scan.entry_at
                continue
            merged[scan.plate] = OngoingEntry(
                id=f"lpr-{scan.plate}",
                kind="UNKNOWN",
                name=UNIDENTIFIED,
                type="UNKNOWN",
                plate=scan.plate,
                transport=TransportMode.CAR,
                entry_at=scan.entry_at,
                is_vip=False,
                overstaying=False,
            )

        entries = list(merged.values())
        for entry in entries:
            entry.duration = format_duration(entry.entry_at, None, now)
        return sorted(
            entries,
            key=lambda e: e.entry_at.timestamp() if e.entry_at else 0.0,
            reverse=True,
        )

    def counts(self, now: datetime | None = None) -> DashboardCounts:
        visitors = list(self._store.visitors.values())
        return DashboardCounts(
            pending=sum(v.status == VisitorStatus.PENDING for v in visitors),
            approved=sum(v.status == VisitorStatus.APPROVED for v in visitors),
            rejected=sum(v.status == VisitorStatus.REJECTED for v in visitors),
            total=len(visitors),
            inside=len(self.ongoing(now)),
        )

    def overstaying(self, now: datetime | None = None) -> list[OngoingEntry]:
        return [entry for entry in self.ongoing(now) if entry.overstaying]
