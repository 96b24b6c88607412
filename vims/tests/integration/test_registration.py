"""
Integration tests for registration, approval and staff notifications.

Services run against an in-memory Store with a mock e-mail notifier.
"""

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from vims.application.container import build_services
from vims.domain.errors import (
    BlacklistedError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from vims.domain.models import (
    PURPOSE_COURIER,
    PURPOSE_FOOD,
    BlacklistRecord,
    QRType,
    VisitorStatus,
    VisitorType,
)
from vims.infrastructure.notify import EmailNotifier

START = datetime(2025, 6, 2, 9, 0, tzinfo=timezone.utc)


class TestRegister:
    """Tests for RegistrationService.register."""

    def test_walk_in_is_approved_for_the_day(self, services, store, make_walk_in):
        visitor = services.registration.register(make_walk_in())

        assert visitor.status == VisitorStatus.APPROVED
        assert visitor.type == VisitorType.ADHOC
        assert visitor.qr_type == QRType.QR1
        assert visitor.visit_date == datetime(2025, 6, 2, 0, 0, tzinfo=timezone.utc)
        assert visitor.end_date == datetime(2025, 6, 2, 23, 59, 59, tzinfo=timezone.utc)
        assert visitor.registered_by == "SELF"
        assert store.visitors[visitor.id] is visitor

    def test_capped_walk_in_window(self, services, make_walk_in):
        visitor = services.registration.register(
            make_walk_in(purpose=PURPOSE_FOOD, specified_location=None, drop_off_area="Lobby")
        )

        assert visitor.visit_date == START
        assert visitor.end_date == START + timedelta(minutes=45)

    def test_preregistered_guest_waits_for_approval(self, services, make_guest):
        visitor = services.registration.register(make_guest())

        assert visitor.status == VisitorStatus.PENDING
        assert visitor.qr_type == QRType.QR2
        assert visitor.license_plate == "WXY 1234"
        assert visitor.visit_date == START + timedelta(days=1)

    def test_service_car_is_lpr_only_and_pending(self, services, make_guest):
        visitor = services.registration.register(
            make_guest(purpose=PURPOSE_COURIER, drop_off_area="Dock 1", staff_number=None, location=None)
        )

        assert visitor.qr_type == QRType.NONE
        assert visitor.status == VisitorStatus.PENDING
        assert visitor.end_date == visitor.visit_date + timedelta(minutes=45)

    def test_codes_are_unique(self, services, make_walk_in):
        codes = {services.registration.register(make_walk_in()).id for _ in range(20)}
        assert len(codes) == 20

    def test_invalid_form_writes_nothing(self, services, store, make_walk_in):
        with pytest.raises(ValidationError) as exc_info:
            services.registration.register(make_walk_in(name="", contact="x"))

        assert set(exc_info.value.errors) == {"name", "contact"}
        assert store.visitors == {}

    def test_blacklisted_plate_is_refused(self, services, store, make_guest):
        store.save_blacklist(
            BlacklistRecord(id="bl-1", reason="Tailgating", created_by="admin", timestamp=START, license_plate="WXY1234")
        )

        with pytest.raises(BlacklistedError) as exc_info:
            services.registration.register(make_guest())

        assert exc_info.value.reason == "Tailgating"
        assert store.visitors == {}

    def test_blacklisted_phone_is_refused_with_clean_ic_and_plate(self, services, store, make_guest):
        store.save_blacklist(
            BlacklistRecord(id="bl-2", reason="Harassment", created_by="admin", timestamp=START, phone="0129876543")
        )

        with pytest.raises(BlacklistedError) as exc_info:
            services.registration.register(make_guest(ic_number="770707-07-7777", license_plate="CLN 1"))

        assert exc_info.value.reason == "Harassment"
        assert store.visitors == {}

    def test_check_blacklist_by_phone(self, services):
        record = services.blacklist.add("Harassment", actor="admin", phone="012-987 6543")

        assert services.registration.check_blacklist(phone="0129876543") == record
        assert services.registration.check_blacklist(phone="0110000000") is None


class TestInvite:
    """Tests for staff invitations."""

    def test_invite_sends_invitation(self, services, notifier, make_guest):
        visitor = services.registration.invite(make_guest(type=VisitorType.ADHOC), inviter="staff1")

        assert visitor.type == VisitorType.PREREGISTERED
        assert visitor.registered_by == "staff1"
        notifier.send.assert_called_once()
        message = notifier.send.call_args.args[0]
        assert message.to == "ahmad@example.com"
        assert visitor.id in message.text

    def test_invite_requires_email(self, services, notifier, make_guest):
        with pytest.raises(ValidationError) as exc_info:
            services.registration.invite(make_guest(email=None), inviter="staff1")

        assert "email" in exc_info.value.errors
        notifier.send.assert_not_called()


class TestApproval:
    """Tests for approve/reject and the notifications they create."""

    def test_approve_notifies_staff_and_sends_pass(self, services, notifier, make_guest):
        visitor = services.registration.invite(make_guest(), inviter="staff1")
        notifier.reset_mock()

        services.registration.approve(visitor.id, actor="admin")

        assert visitor.status == VisitorStatus.APPROVED
        notifier.send.assert_called_once()
        assert notifier.send.call_args.args[0].subject == f"Your visitor pass {visitor.id}"

        [notification] = services.notifications.list_for("staff1")
        assert notification.message == "Guest update: Ahmad Faiz has been approved."
        assert notification.read is False

    def test_approve_outside_event_loop_with_live_relay(self, settings, store, ocr_engine, make_guest):
        relay = EmailNotifier(
            "http://relay.test/send",
            "vims@example.com",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"ok": True})),
        )
        services = build_services(settings, store, relay, ocr_engine=ocr_engine)
        visitor = services.registration.invite(make_guest(), inviter="staff1")

        services.registration.approve(visitor.id, actor="admin")

        assert visitor.status == VisitorStatus.APPROVED
        assert len(services.notifications.list_for("staff1")) == 1

    def test_reject_records_reason(self, services, make_guest):
        visitor = services.registration.invite(make_guest(), inviter="staff1")

        services.registration.reject(visitor.id, "  No host available ", actor="admin")

        assert visitor.status == VisitorStatus.REJECTED
        assert visitor.rejection_reason == "No host available"
        [notification] = services.notifications.list_for("staff1")
        assert notification.status == VisitorStatus.REJECTED

    def test_self_registered_visitor_has_nobody_to_notify(self, services, store, make_guest):
        visitor = services.registration.register(make_guest())

        services.registration.approve(visitor.id, actor="admin")

        assert store.notifications == {}

    def test_only_pending_visitors_move(self, services, make_guest, make_walk_in):
        visitor = services.registration.register(make_guest())
        services.registration.approve(visitor.id, actor="admin")

        with pytest.raises(InvalidTransitionError):
            services.registration.reject(visitor.id, None, actor="admin")
        with pytest.raises(InvalidTransitionError):
            services.registration.approve(services.registration.register(make_walk_in()).id, actor="admin")

    def test_unknown_visitor(self, services):
        with pytest.raises(NotFoundError):
            services.registration.approve("00000", actor="admin")

    def test_mark_read_only_own_notifications(self, services, make_guest):
        visitor = services.registration.invite(make_guest(), inviter="staff1")
        services.registration.approve(visitor.id, actor="admin")
        [notification] = services.notifications.list_for("staff1")

        with pytest.raises(NotFoundError):
            services.notifications.mark_read(notification.id, "admin")

        services.notifications.mark_read(notification.id, "staff1")
        assert services.notifications.list_for("staff1", unread_only=True) == []


class TestStatusAndReschedule:
    """Tests for status lookup and rescheduling."""

    def test_status_lookup(self, services, make_guest):
        visitor = services.registration.register(make_guest())
        assert services.registration.get_by_code(f" {visitor.id} ") is visitor

    @pytest.mark.parametrize("code", ["123", "abcde", "", "123456"])
    def test_malformed_code(self, services, code):
        with pytest.raises(ValidationError):
            services.registration.get_by_code(code)

    def test_unknown_code(self, services):
        with pytest.raises(NotFoundError):
            services.registration.get_by_code("99999")

    def test_reschedule_keeps_visit_length(self, services, make_guest):
        visitor = services.registration.register(make_guest())
        new_start = START + timedelta(days=3)

        services.registration.reschedule(visitor.id, new_start)

        assert visitor.visit_date == new_start
        assert visitor.end_date == new_start + timedelta(hours=3)

    def test_reschedule_rejects_inverted_window(self, services, make_guest):
        visitor = services.registration.register(make_guest())
        with pytest.raises(ValidationError):
            services.registration.reschedule(visitor.id, START + timedelta(days=3), START + timedelta(days=2))

    def test_walk_ins_cannot_be_rescheduled(self, services, make_walk_in):
        visitor = services.registration.register(make_walk_in())
        with pytest.raises(InvalidTransitionError):
            services.registration.reschedule(visitor.id, START + timedelta(days=1))

    def test_started_visits_cannot_be_rescheduled(self, services, make_guest):
        visitor = services.registration.register(make_guest())
        visitor.time_in = START
        with pytest.raises(InvalidTransitionError):
            services.registration.reschedule(visitor.id, START + timedelta(days=1))

    def test_list_filters(self, services, make_guest, make_walk_in):
        guest = services.registration.invite(make_guest(), inviter="staff1")
        services.registration.register(make_walk_in())

        assert services.registration.list_visitors(status=VisitorStatus.PENDING) == [guest]
        assert services.registration.list_visitors(registered_by="staff1") == [guest]
        assert services.registration.list_visitors(query="ahmad") == [guest]
        assert len(services.registration.list_visitors()) == 2
