"""
Integration tests for the persistence mirror and the e-mail relay client.

Uses in-memory SQLite and httpx.MockTransport.
"""

import json

import httpx
import pytest

from vims.application.container import build_services
from vims.application.store import MirrorOp, MirrorWrite, Store
from vims.domain.models import LprMode, VisitorStatus
from vims.infrastructure.db.repository import DocumentRepository
from vims.infrastructure.notify import EmailMessage, EmailNotifier
from vims.infrastructure.persistence import PersistenceMirror


class TestDocumentRepository:
    """Tests for DocumentRepository."""

    @pytest.mark.asyncio
    async def test_set_and_get(self, db_session):
        repo = DocumentRepository(db_session)

        await repo.set("visitors", "48213", {"id": "48213", "name": "Siti"})
        await repo.set("visitors", "48213", {"id": "48213", "name": "Siti Aminah"})

        assert await repo.get("visitors", "48213") == {"id": "48213", "name": "Siti Aminah"}
        assert await repo.get_all("visitors") == [{"id": "48213", "name": "Siti Aminah"}]

    @pytest.mark.asyncio
    async def test_update_merges_fields(self, db_session):
        repo = DocumentRepository(db_session)
        await repo.set("vips", "vip-1", {"id": "vip-1", "status": "ACTIVE"})

        assert await repo.update("vips", "vip-1", {"status": "EXPIRED"}) is True
        assert await repo.update("vips", "vip-2", {"status": "EXPIRED"}) is False
        assert await repo.get("vips", "vip-1") == {"id": "vip-1", "status": "EXPIRED"}

    @pytest.mark.asyncio
    async def test_delete_all_only_touches_one_collection(self, db_session):
        repo = DocumentRepository(db_session)
        await repo.set("lpr_logs", "a", {"id": "a"})
        await repo.set("lpr_logs", "b", {"id": "b"})
        await repo.set("visitors", "c", {"id": "c"})

        assert await repo.delete_all("lpr_logs") == 2
        assert await repo.get_all("lpr_logs") == []
        assert len(await repo.get_all("visitors")) == 1


class TestPersistenceMirror:
    """Tests for PersistenceMirror and Store hydration."""

    @pytest.fixture
    async def mirror(self, session_factory):
        mirror = PersistenceMirror(session_factory)
        await mirror.start()
        yield mirror
        await mirror.stop()

    @pytest.mark.asyncio
    async def test_store_survives_restart(self, mirror, clock, settings, notifier, ocr_engine, make_guest):
        store = Store(mirror, timezone="UTC", clock=clock)
        services = build_services(settings, store, notifier, ocr_engine=ocr_engine)
        visitor = services.registration.register(make_guest())
        services.registration.approve(visitor.id, actor="admin")
        services.access.scan_plate("WXY1234", LprMode.ENTRY)
        services.blacklist.add("Trespassing", actor="admin", license_plate="BAD 1")
        await mirror.flush()

        restored = Store(timezone="UTC", clock=clock)
        counts = await restored.hydrate(mirror.load)

        assert counts["visitors"] == 1
        assert counts["access_logs"] == 1
        assert counts["lpr_logs"] == 1
        assert restored.visitors[visitor.id] == visitor
        assert restored.visitors[visitor.id].status == VisitorStatus.APPROVED
        assert restored.scan_records["WXY1234"].entry_at == store.scan_records["WXY1234"].entry_at
        assert [r.license_plate for r in restored.blacklist.values()] == ["BAD1"]

    @pytest.mark.asyncio
    async def test_mark_read_is_a_partial_update(self, mirror, clock, settings, notifier, ocr_engine, make_guest):
        store = Store(mirror, timezone="UTC", clock=clock)
        services = build_services(settings, store, notifier, ocr_engine=ocr_engine)
        visitor = services.registration.invite(make_guest(), inviter="staff1")
        services.registration.approve(visitor.id, actor="admin")
        [notification] = services.notifications.list_for("staff1")
        await mirror.flush()

        services.notifications.mark_read(notification.id, "staff1")
        await mirror.flush()

        [doc] = await mirror.load("notifications")
        assert doc["read"] is True
        assert doc["message"] == notification.message

    @pytest.mark.asyncio
    async def test_clear_is_mirrored(self, mirror, clock):
        store = Store(mirror, timezone="UTC", clock=clock)
        mirror.submit(MirrorWrite(MirrorOp.SET, "lpr_logs", "x", {"id": "x"}))
        store.clear_lpr_logs()
        await mirror.flush()

        assert await mirror.load("lpr_logs") == []

    @pytest.mark.asyncio
    async def test_invalid_documents_are_skipped(self, mirror):
        mirror.submit(MirrorWrite(MirrorOp.SET, "visitors", "bad", {"id": "bad"}))
        await mirror.flush()

        store = Store(timezone="UTC")
        counts = await store.hydrate(mirror.load)

        assert counts["visitors"] == 0
        assert store.visitors == {}

    @pytest.mark.asyncio
    async def test_failed_write_does_not_stop_the_worker(self, mirror):
        mirror.submit(MirrorWrite(MirrorOp.SET, "visitors", "bad", {"when": object()}))
        mirror.submit(MirrorWrite(MirrorOp.SET, "visitors", "ok", {"id": "ok"}))
        await mirror.flush()

        assert mirror.running
        assert await mirror.load("visitors") == [{"id": "ok"}]


MESSAGE = EmailMessage(to="ahmad@example.com", subject="Pass", html="<p>Hi</p>", text="Hi")


class TestEmailNotifier:
    """Tests for EmailNotifier."""

    @pytest.mark.asyncio
    async def test_posts_to_relay(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"ok": True})

        notifier = EmailNotifier("http://relay.test/send", "vims@example.com", transport=httpx.MockTransport(handler))

        assert await notifier.deliver(MESSAGE) is True
        assert seen == [
            {
                "to": "ahmad@example.com",
                "from": "vims@example.com",
                "subject": "Pass",
                "html": "<p>Hi</p>",
                "text": "Hi",
            }
        ]

    @pytest.mark.asyncio
    async def test_relay_refusal(self):
        notifier = EmailNotifier(
            "http://relay.test/send",
            "vims@example.com",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"ok": False})),
        )
        assert await notifier.deliver(MESSAGE) is False

    @pytest.mark.asyncio
    async def test_relay_error_status(self):
        notifier = EmailNotifier(
            "http://relay.test/send",
            "vims@example.com",
            transport=httpx.MockTransport(lambda request: httpx.Response(502)),
        )
        assert await notifier.deliver(MESSAGE) is False

    @pytest.mark.asyncio
    async def test_unreachable_relay(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        notifier = EmailNotifier("http://relay.test/send", "vims@example.com", transport=httpx.MockTransport(handler))
        assert await notifier.deliver(MESSAGE) is False

    @pytest.mark.asyncio
    async def test_send_runs_in_background(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            return httpx.Response(200, json={"ok": True})

        notifier = EmailNotifier("http://relay.test/send", "vims@example.com", transport=httpx.MockTransport(handler))

        notifier.send(MESSAGE)
        await notifier.aclose()

        assert seen == ["/send"]

    @pytest.mark.asyncio
    async def test_disabled_without_endpoint(self):
        notifier = EmailNotifier(None, "vims@example.com")

        notifier.send(MESSAGE)

        assert notifier.enabled is False
        assert await notifier.deliver(MESSAGE) is False
