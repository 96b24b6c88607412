"""
Integration tests for checkpoint scans.

Covers QR toggling, checkpoint capability, registry precedence and the
audit trail each scan leaves behind.
"""

from datetime import timedelta

import pytest

from vims.application.movement import MovementTracker
from vims.application.vip import VipForm
from vims.domain.errors import ValidationError
from vims.domain.models import (
    MANUAL_VISITOR_ID,
    UNIDENTIFIED,
    AccessAction,
    Decision,
    Location,
    LprMode,
    LprStatus,
    ScanKnownStatus,
    ScanMethod,
    ScanOutcome,
    TransportMode,
    VipType,
)


@pytest.fixture
def approved_guest(services, make_guest):
    visitor = services.registration.register(make_guest())
    services.registration.approve(visitor.id, actor="admin")
    return visitor


class TestQrScan:
    """Tests for AccessControlService.scan_qr."""

    def test_walk_in_toggles_entry_and_exit(self, services, store, clock, make_walk_in):
        visitor = services.registration.register(make_walk_in())

        first = services.access.scan_qr(visitor.id, Location.FRONT_GATE)
        entered_at = visitor.time_in
        clock.advance(minutes=30)
        second = services.access.scan_qr(visitor.id, Location.FRONT_GATE)

        assert first.allowed and first.access_log.action == AccessAction.ENTRY
        assert second.allowed and second.access_log.action == AccessAction.EXIT
        assert visitor.time_in == entered_at
        assert visitor.time_out == entered_at + timedelta(minutes=30)
        assert not visitor.is_inside
        assert len(store.access_logs) == 2

    def test_scan_after_exit_logs_entry_but_keeps_first_visit(self, services, clock, make_walk_in):
        visitor = services.registration.register(make_walk_in())
        services.access.scan_qr(visitor.id, Location.FRONT_GATE)
        entered_at = visitor.time_in
        clock.advance(minutes=30)
        services.access.scan_qr(visitor.id, Location.FRONT_GATE)
        exited_at = visitor.time_out
        clock.advance(minutes=10)

        third = services.access.scan_qr(visitor.id, Location.FRONT_GATE)

        assert third.allowed and third.access_log.action == AccessAction.ENTRY
        assert visitor.time_in == entered_at
        assert visitor.time_out == exited_at

    def test_second_entry_keeps_time_in(self, services, store, clock, make_walk_in):
        visitor = services.registration.register(make_walk_in())
        tracker = MovementTracker(store)
        first = clock()

        tracker.record_entry(visitor.id, first)
        tracker.record_entry(visitor.id, first + timedelta(minutes=5))

        assert visitor.time_in == first
        assert visitor.time_out is None

    def test_qr1_refused_at_elevator(self, services, store, make_walk_in):
        visitor = services.registration.register(make_walk_in())

        result = services.access.scan_qr(visitor.id, Location.ELEVATOR)

        assert result.decision.decision == Decision.DENY
        assert result.access_log.action == AccessAction.DENIED
        assert result.access_log.details == "WRONG_QR_CLASS"
        assert visitor.time_in is None

    def test_qr2_admitted_at_elevator(self, services, approved_guest):
        result = services.access.scan_qr(approved_guest.id, Location.ELEVATOR)

        assert result.allowed
        assert result.access_log.location == Location.ELEVATOR
        assert approved_guest.time_in is not None

    def test_pending_visitor_is_held(self, services, make_guest):
        visitor = services.registration.register(make_guest())

        result = services.access.scan_qr(visitor.id, Location.ELEVATOR)

        assert not result.allowed
        assert result.decision.reason == "Visitor is awaiting approval"
        assert result.access_log.details == "Status not approved"

    def test_ban_after_registration_blocks_the_pass(self, services, make_walk_in):
        visitor = services.registration.register(make_walk_in())
        services.blacklist.add("Trespassing", actor="admin", ic_number="900101-14-5678")

        result = services.access.scan_qr(visitor.id, Location.FRONT_GATE)

        assert not result.allowed
        assert result.decision.reason == "Blacklisted: Trespassing"
        assert result.access_log.visitor_id == visitor.id
        assert visitor.time_in is None

    def test_unknown_code_is_logged(self, services, store):
        result = services.access.scan_qr("00000", Location.FRONT_GATE)

        assert not result.allowed
        log = store.access_logs[-1]
        assert log.visitor_id == "00000"
        assert log.visitor_name == UNIDENTIFIED
        assert log.details == "NOT_FOUND"

    def test_system_is_not_a_checkpoint(self, services):
        with pytest.raises(ValidationError):
            services.access.scan_qr("12345", Location.SYSTEM)


class TestPlateScan:
    """Tests for AccessControlService.scan_plate."""

    def test_approved_car_enters_and_leaves(self, services, store, clock, approved_guest):
        entry = services.access.scan_plate("wxy-1234", LprMode.ENTRY, confidence=0.92)
        clock.advance(hours=1)
        exit_ = services.access.scan_plate("WXY1234", LprMode.EXIT)

        assert entry.allowed and exit_.allowed
        assert entry.lpr_log.plate == "WXY1234"
        assert entry.lpr_log.visitor_id == approved_guest.id
        assert entry.lpr_log.requestor_name == "Ahmad Faiz"
        assert approved_guest.time_out == approved_guest.time_in + timedelta(hours=1)

        record = store.scan_records["WXY1234"]
        assert record.status == ScanKnownStatus.KNOWN
        assert record.entry_at is not None
        assert record.exit_at == approved_guest.time_out
        assert record.gate == LprMode.EXIT
        assert [log.method for log in store.access_logs[-2:]] == [ScanMethod.LPR, ScanMethod.LPR]

    def test_unknown_plate(self, services, store):
        result = services.access.scan_plate("ZZZ 999", LprMode.ENTRY)

        assert not result.allowed
        assert result.lpr_log.status == LprStatus.UNKNOWN
        assert result.lpr_log.requestor_name == UNIDENTIFIED
        assert result.lpr_log.phone_number == "N/A"
        record = store.scan_records["ZZZ999"]
        assert record.status == ScanKnownStatus.UNKNOWN
        assert record.attempted_at is not None
        assert record.entry_at is None

    def test_pedestrian_plate_is_not_matched(self, services, make_guest):
        visitor = services.registration.register(make_guest(transport_mode=TransportMode.NON_CAR))
        services.registration.approve(visitor.id, actor="admin")

        result = services.access.scan_plate("WXY1234", LprMode.ENTRY)

        assert result.lpr_log.status == LprStatus.UNKNOWN

    def test_pending_car_is_held(self, services, store, make_guest):
        services.registration.register(make_guest())

        result = services.access.scan_plate("WXY1234", LprMode.ENTRY)

        assert result.lpr_log.status == LprStatus.PENDING
        assert store.scan_records["WXY1234"].outcome == ScanOutcome.HOLD

    def test_blacklisted_plate(self, services, store):
        services.blacklist.add("Stolen vehicle", actor="admin", license_plate="BAD 1")

        result = services.access.scan_plate("bad1", LprMode.ENTRY)

        assert result.lpr_log.status == LprStatus.BLACKLISTED
        assert store.scan_records["BAD1"].reason == "Blacklisted: Stolen vehicle"

    def test_vip_plate_enters(self, services, store, clock):
        vip = services.vips.create(
            VipForm(
                name="Dato' Seri",
                contact="0190000000",
                designation="Minister",
                license_plate="VIP 1",
                reason="Official visit",
                vip_type=VipType.VVIP,
            ),
            actor="admin",
        )

        result = services.access.scan_plate("VIP1", LprMode.ENTRY)

        assert result.allowed
        assert result.decision.reason == "VVIP access granted"
        assert result.lpr_log.is_vip
        assert result.lpr_log.vip_type == VipType.VVIP
        assert result.lpr_log.designation == "Minister"
        assert vip.last_entry_time == clock()
        assert vip.is_inside

    def test_plates_are_refused_at_the_elevator(self, services, approved_guest):
        result = services.access.scan_plate("WXY1234", LprMode.ENTRY, location=Location.ELEVATOR)

        assert not result.allowed
        assert result.access_log.details == "LPR_NOT_PERMITTED"
        assert approved_guest.time_in is None

    def test_empty_plate(self, services):
        with pytest.raises(ValidationError):
            services.access.scan_plate(" - ", LprMode.ENTRY)


class TestManualOverride:
    """Tests for AccessControlService.manual_override."""

    def test_override_is_logged(self, services, store):
        log = services.access.manual_override("Ambulance", Location.FRONT_GATE, actor="admin")

        assert log.action == AccessAction.MANUAL_OVERRIDE
        assert log.visitor_id == MANUAL_VISITOR_ID
        assert log.visitor_name == "Manual (Ambulance)"
        assert log.method == ScanMethod.MANUAL
        assert store.access_logs == [log]

    def test_override_needs_reason(self, services, store):
        with pytest.raises(ValidationError):
            services.access.manual_override("  ", Location.FRONT_GATE, actor="admin")
        assert store.access_logs == []

    def test_logs_read_newest_first_within_one_tick(self, services, store):
        services.access.manual_override("first", Location.FRONT_GATE, actor="admin")
        services.access.manual_override("second", Location.FRONT_GATE, actor="admin")

        assert [log.visitor_name for log in store.access_logs_newest_first()] == [
            "Manual (second)",
            "Manual (first)",
        ]
