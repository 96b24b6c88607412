"""
Integration tests for the operations dashboard.
"""

from datetime import datetime, timedelta, timezone

from vims.application.vip import VipForm
from vims.domain.models import (
    PURPOSE_FOOD,
    UNIDENTIFIED,
    Location,
    LprMode,
    LprScanRecord,
    ScanKnownStatus,
    ScanOutcome,
    VipType,
)

START = datetime(2025, 6, 2, 9, 0, tzinfo=timezone.utc)


def _vip_form() -> VipForm:
    return VipForm(
        name="Dato' Seri",
        contact="0190000000",
        designation="Minister",
        license_plate="VIP 1",
        reason="Official visit",
        vip_type=VipType.VVIP,
    )


def test_empty_dashboard(services):
    assert services.dashboard.ongoing() == []
    counts = services.dashboard.counts()
    assert (counts.pending, counts.approved, counts.total, counts.inside) == (0, 0, 0, 0)


def test_counts(services, make_guest, make_walk_in):
    services.registration.register(make_guest())
    rejected = services.registration.register(make_guest())
    services.registration.reject(rejected.id, "Full", actor="admin")
    walk_in = services.registration.register(make_walk_in())
    services.access.scan_qr(walk_in.id, Location.FRONT_GATE)

    counts = services.dashboard.counts()

    assert counts.pending == 1
    assert counts.rejected == 1
    assert counts.approved == 1
    assert counts.total == 3
    assert counts.inside == 1


def test_ongoing_lists_visitors_and_vips(services, clock, make_walk_in):
    walk_in = services.registration.register(make_walk_in())
    services.access.scan_qr(walk_in.id, Location.FRONT_GATE)
    clock.advance(minutes=10)
    services.vips.create(_vip_form(), actor="admin")
    services.access.scan_plate("VIP1", LprMode.ENTRY)
    clock.advance(minutes=5)

    ongoing = services.dashboard.ongoing()

    assert [entry.name for entry in ongoing] == ["Dato' Seri", "Siti Aminah"]
    vip_entry, visitor_entry = ongoing
    assert vip_entry.is_vip and vip_entry.type == "VVIP"
    assert vip_entry.duration == "In progress (5m 00s)"
    assert visitor_entry.id == walk_in.id
    assert visitor_entry.entry_at == START


def test_exited_visitor_leaves_the_list(services, clock, make_walk_in):
    walk_in = services.registration.register(make_walk_in())
    services.access.scan_qr(walk_in.id, Location.FRONT_GATE)
    clock.advance(minutes=20)
    services.access.scan_qr(walk_in.id, Location.FRONT_GATE)

    assert services.dashboard.ongoing() == []


def test_car_appears_once(services, make_guest):
    visitor = services.registration.register(make_guest())
    services.registration.approve(visitor.id, actor="admin")
    services.access.scan_plate("WXY1234", LprMode.ENTRY)

    [entry] = services.dashboard.ongoing()

    assert entry.id == visitor.id
    assert entry.plate == "WXY 1234"


def test_unmatched_plate_inside(services, store):
    store.save_scan_record(
        LprScanRecord(
            plate="QAA8",
            status=ScanKnownStatus.KNOWN,
            last_seen_at=START,
            outcome=ScanOutcome.PASSED,
            entry_at=START,
        )
    )

    [entry] = services.dashboard.ongoing()

    assert entry.id == "lpr-QAA8"
    assert entry.kind == "UNKNOWN"
    assert entry.name == UNIDENTIFIED


def test_blocked_plate_is_not_inside(services, store):
    store.save_scan_record(
        LprScanRecord(
            plate="BAD1",
            status=ScanKnownStatus.KNOWN,
            last_seen_at=START,
            outcome=ScanOutcome.BLOCKED,
            entry_at=START,
        )
    )
    assert services.dashboard.ongoing() == []


def test_overstaying(services, clock, make_walk_in):
    delivery = services.registration.register(
        make_walk_in(purpose=PURPOSE_FOOD, specified_location=None, drop_off_area="Lobby")
    )
    services.access.scan_qr(delivery.id, Location.FRONT_GATE)

    assert services.dashboard.overstaying() == []

    clock.advance(hours=1)
    [entry] = services.dashboard.overstaying()
    assert entry.id == delivery.id
    assert entry.overstaying
    assert services.dashboard.overstaying(START + timedelta(minutes=30)) == []
