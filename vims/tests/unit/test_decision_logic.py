"""
Unit tests for decision logic.

Tests blacklist lookup, the RegistryMatcher precedence and the
AccessDecisionEngine rule table.
"""

from datetime import datetime, timedelta, timezone

import pytest

from vims.domain.access import (
    AccessDecisionEngine,
    RegistryMatcher,
    bundle_for_registration,
    find_blacklisted,
)
from vims.domain.models import (
    ELEVATOR,
    FRONT_GATE,
    PURPOSE_EXTERNAL_STAFF,
    BlacklistRecord,
    BlacklistStatus,
    Blacklisted,
    Decision,
    IdentifierBundle,
    LookupKind,
    LprStatus,
    QRType,
    ScanMethod,
    ScanOutcome,
    TransportMode,
    Unknown,
    Vip,
    VipRecord,
    VipStatus,
    VipType,
    Visitor,
    VisitorMatch,
    VisitorStatus,
    VisitorType,
)

NOW = datetime(2025, 6, 2, 9, 0, tzinfo=timezone.utc)


def _visitor(**overrides) -> Visitor:
    data = dict(
        id="48213",
        name="Ahmad Faiz",
        contact="012-9876543",
        ic_number="880202-10-1234",
        purpose=PURPOSE_EXTERNAL_STAFF,
        type=VisitorType.PREREGISTERED,
        transport_mode=TransportMode.CAR,
        status=VisitorStatus.APPROVED,
        qr_type=QRType.QR2,
        visit_date=NOW,
        end_date=NOW + timedelta(hours=3),
        created_at=NOW - timedelta(days=1),
        license_plate="WXY1234",
    )
    data.update(overrides)
    return Visitor(**data)


def _vip(**overrides) -> VipRecord:
    data = dict(
        id="vip-1",
        vip_type=VipType.VVIP,
        designation="Minister",
        name="Dato' Seri",
        contact="0190000000",
        license_plate="VIP1",
        valid_from=NOW - timedelta(days=1),
        valid_until=NOW + timedelta(days=30),
        reason="Official",
        created_by="admin",
        created_at=NOW - timedelta(days=1),
    )
    data.update(overrides)
    return VipRecord(**data)


def _ban(**overrides) -> BlacklistRecord:
    data = dict(id="bl-1", reason="Trespassing", created_by="admin", timestamp=NOW)
    data.update(overrides)
    return BlacklistRecord(**data)


class TestFindBlacklisted:
    """Tests for find_blacklisted."""

    def test_plate_matches_normalized(self):
        ban = _ban(license_plate="WXY1234")
        assert find_blacklisted(IdentifierBundle(plate="wxy-1234"), [ban]) is ban

    def test_phone_matches_normalized(self):
        ban = _ban(phone="0129876543")
        assert find_blacklisted(IdentifierBundle(phone="012-987 6543"), [ban]) is ban

    def test_ic_matches_exactly(self):
        ban = _ban(ic_number="880202-10-1234")
        assert find_blacklisted(IdentifierBundle(ic_number=" 880202-10-1234 "), [ban]) is ban
        assert find_blacklisted(IdentifierBundle(ic_number="880202101234"), [ban]) is None

    def test_unbanned_records_are_ignored(self):
        ban = _ban(license_plate="WXY1234", status=BlacklistStatus.UNBANNED)
        assert find_blacklisted(IdentifierBundle(plate="WXY1234"), [ban]) is None

    def test_empty_bundle_never_matches(self):
        ban = _ban(license_plate="", phone="", ic_number="")
        assert find_blacklisted(bundle_for_registration("", None, " "), [ban]) is None


class TestRegistryMatcher:
    """Tests for RegistryMatcher."""

    @pytest.fixture
    def matcher(self) -> RegistryMatcher:
        return RegistryMatcher()

    def _match(self, matcher, bundle, kind, blacklist=(), vips=(), visitors=()):
        return matcher.match(bundle, kind, blacklist=blacklist, vips=vips, visitors=visitors, now=NOW)

    def test_nothing_matches(self, matcher):
        assert isinstance(self._match(matcher, IdentifierBundle(plate="ABC1"), LookupKind.PLATE), Unknown)

    def test_visitor_by_code(self, matcher):
        visitor = _visitor()
        result = self._match(matcher, IdentifierBundle(code="48213"), LookupKind.CODE, visitors=[visitor])
        assert isinstance(result, VisitorMatch)
        assert result.record is visitor

    def test_blacklist_beats_vip(self, matcher):
        ban = _ban(license_plate="VIP1")
        result = self._match(
            matcher, IdentifierBundle(plate="VIP 1"), LookupKind.PLATE, blacklist=[ban], vips=[_vip()]
        )
        assert isinstance(result, Blacklisted)

    def test_vip_beats_visitor(self, matcher):
        result = self._match(
            matcher,
            IdentifierBundle(plate="WXY1234"),
            LookupKind.PLATE,
            vips=[_vip(license_plate="WXY 1234")],
            visitors=[_visitor()],
        )
        assert isinstance(result, Vip)

    def test_code_lookup_checks_visitor_identifiers_against_blacklist(self, matcher):
        """A pass issued before the ban must not open the gate."""
        ban = _ban(ic_number="880202-10-1234")
        result = self._match(
            matcher, IdentifierBundle(code="48213"), LookupKind.CODE, blacklist=[ban], visitors=[_visitor()]
        )
        assert isinstance(result, Blacklisted)

    def test_expired_vip_is_not_a_vip(self, matcher):
        vip = _vip(valid_until=NOW - timedelta(minutes=1))
        result = self._match(matcher, IdentifierBundle(plate="VIP1"), LookupKind.PLATE, vips=[vip])
        assert isinstance(result, Unknown)

    @pytest.mark.parametrize(
        "valid_until,is_vip",
        [
            (NOW - timedelta(seconds=1), False),
            (NOW, True),
            (NOW + timedelta(seconds=1), True),
        ],
    )
    def test_vip_expiry_boundary(self, matcher, valid_until, is_vip):
        vip = _vip(valid_until=valid_until)
        result = self._match(matcher, IdentifierBundle(plate="VIP1"), LookupKind.PLATE, vips=[vip])
        assert isinstance(result, Vip) is is_vip

    def test_deactivated_vip_is_not_a_vip(self, matcher):
        vip = _vip(status=VipStatus.DEACTIVATED)
        result = self._match(matcher, IdentifierBundle(plate="VIP1"), LookupKind.PLATE, vips=[vip])
        assert isinstance(result, Unknown)

    def test_plate_lookup_ignores_pedestrians(self, matcher):
        walker = _visitor(transport_mode=TransportMode.NON_CAR)
        result = self._match(matcher, IdentifierBundle(plate="WXY1234"), LookupKind.PLATE, visitors=[walker])
        assert isinstance(result, Unknown)

    def test_plate_lookup_prefers_latest_registration(self, matcher):
        older = _visitor(id="11111", created_at=NOW - timedelta(days=3))
        newer = _visitor(id="22222", created_at=NOW - timedelta(hours=1))
        result = self._match(
            matcher, IdentifierBundle(plate="WXY1234"), LookupKind.PLATE, visitors=[newer, older]
        )
        assert result.record.id == "22222"


class TestAccessDecisionEngine:
    """Tests for AccessDecisionEngine."""

    @pytest.fixture
    def engine(self) -> AccessDecisionEngine:
        return AccessDecisionEngine()

    def test_unknown_denied(self, engine):
        decision = engine.decide(Unknown(), FRONT_GATE, ScanMethod.QR)
        assert decision.decision == Decision.DENY
        assert decision.reason == "Visitor not found"
        assert decision.lpr_status == LprStatus.UNKNOWN
        assert decision.log_details == "NOT_FOUND"

    def test_blacklisted_denied_with_reason(self, engine):
        decision = engine.decide(Blacklisted(record=_ban()), FRONT_GATE, ScanMethod.LPR)
        assert decision.decision == Decision.DENY
        assert decision.reason == "Blacklisted: Trespassing"
        assert decision.lpr_status == LprStatus.BLACKLISTED
        assert decision.scan_outcome == ScanOutcome.BLOCKED

    def test_vip_allowed_at_gate(self, engine):
        decision = engine.decide(Vip(record=_vip()), FRONT_GATE, ScanMethod.LPR)
        assert decision.allowed
        assert decision.reason == "VVIP access granted"
        assert decision.lpr_status == LprStatus.APPROVED

    def test_plate_scan_at_elevator_denied_even_for_vip(self, engine):
        decision = engine.decide(Vip(record=_vip()), ELEVATOR, ScanMethod.LPR)
        assert decision.decision == Decision.DENY
        assert decision.log_details == "LPR_NOT_PERMITTED"

    def test_pending_visitor_held(self, engine):
        match = VisitorMatch(record=_visitor(status=VisitorStatus.PENDING))
        decision = engine.decide(match, FRONT_GATE, ScanMethod.LPR)
        assert decision.decision == Decision.DENY
        assert decision.lpr_status == LprStatus.PENDING
        assert decision.scan_outcome == ScanOutcome.HOLD

    def test_rejected_visitor_blocked(self, engine):
        match = VisitorMatch(record=_visitor(status=VisitorStatus.REJECTED))
        decision = engine.decide(match, FRONT_GATE, ScanMethod.LPR)
        assert decision.lpr_status == LprStatus.REJECTED
        assert decision.scan_outcome == ScanOutcome.BLOCKED

    @pytest.mark.parametrize(
        "qr_type,profile,allowed",
        [
            (QRType.QR1, FRONT_GATE, True),
            (QRType.QR1, ELEVATOR, False),
            (QRType.QR2, FRONT_GATE, False),
            (QRType.QR2, ELEVATOR, True),
            (QRType.QR3, FRONT_GATE, True),
            (QRType.QR3, ELEVATOR, True),
            (QRType.NONE, FRONT_GATE, False),
        ],
    )
    def test_qr_class_per_checkpoint(self, engine, qr_type, profile, allowed):
        match = VisitorMatch(record=_visitor(qr_type=qr_type))
        decision = engine.decide(match, profile, ScanMethod.QR)
        assert decision.allowed is allowed
        if not allowed:
            assert decision.log_details == "WRONG_QR_CLASS"

    def test_plate_scan_ignores_qr_class(self, engine):
        """LPR-only visitors (QRType.NONE) drive through the front gate."""
        match = VisitorMatch(record=_visitor(qr_type=QRType.NONE))
        assert engine.decide(match, FRONT_GATE, ScanMethod.LPR).allowed
