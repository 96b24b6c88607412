"""
Pytest configuration and fixtures.

Provides shared fixtures for testing including:
- A controllable clock and an in-memory Store
- Fully wired services with a stub OCR engine and a mock e-mail notifier
- An in-memory SQLite session for the document mirror
- Test client with auth headers
"""

from datetime import datetime, timedelta, timezone
from typing import AsyncIterator
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession

from vims.application.container import Services, build_services
from vims.application.store import Store
from vims.core.config import Settings
from vims.core.security import USERS, create_user_token, get_rate_limiter
from vims.domain.models import (
    PURPOSE_EXTERNAL_STAFF,
    PURPOSE_PUBLIC,
    TransportMode,
    VisitorType,
)
from vims.domain.policies import VisitorRegistration
from vims.infrastructure.db.models import Base
from vims.infrastructure.db.session import create_test_engine, make_session_factory
from vims.infrastructure.ml.ocr import OCREngine, TextLine
from vims.infrastructure.notify import EmailNotifier

START = datetime(2025, 6, 2, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Wall clock the test moves by hand."""

    def __init__(self, start: datetime = START):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class FakeMonotonic:
    """Monotonic seconds the test moves by hand."""

    def __init__(self, start: float = 1000.0):
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


class StubOCREngine(OCREngine):
    """Returns the configured lines for any image."""

    def __init__(self, lines: list[TextLine] | None = None):
        self.lines = lines or []

    def read_lines(self, image) -> list[TextLine]:
        return list(self.lines)


def walk_in_form(**overrides) -> VisitorRegistration:
    """Valid ADHOC public visitor on foot (QR1)."""
    data = dict(
        name="Siti Aminah",
        contact="+60 12-345 6789",
        ic_number="900101-14-5678",
        purpose=PURPOSE_PUBLIC,
        specified_location="Taska",
    )
    data.update(overrides)
    return VisitorRegistration(**data)


def guest_form(**overrides) -> VisitorRegistration:
    """Valid PREREGISTERED staff guest arriving by car (QR2)."""
    data = dict(
        name="Ahmad Faiz",
        contact="012-9876543",
        ic_number="880202-10-1234",
        purpose=PURPOSE_EXTERNAL_STAFF,
        type=VisitorType.PREREGISTERED,
        transport_mode=TransportMode.CAR,
        license_plate="wxy 1234",
        staff_number="S-1001",
        location="Block B",
        email="ahmad@example.com",
        visit_date=START + timedelta(days=1),
        end_date=START + timedelta(days=1, hours=3),
    )
    data.update(overrides)
    return VisitorRegistration(**data)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> Store:
    """Store without a persistence mirror."""
    return Store(timezone="UTC", clock=clock)


@pytest.fixture
def settings() -> Settings:
    return Settings(persistence_enabled=False, timezone="UTC")


@pytest.fixture
def notifier() -> MagicMock:
    """Mock e-mail notifier."""
    return MagicMock(spec=EmailNotifier)


@pytest.fixture
def ocr_engine() -> StubOCREngine:
    return StubOCREngine()


@pytest.fixture
def services(settings, store, notifier, ocr_engine) -> Services:
    return build_services(settings, store, notifier, ocr_engine=ocr_engine)


@pytest.fixture
async def session_factory():
    """Session factory over a fresh in-memory database."""
    engine = create_test_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield make_session_factory(engine)

    await engine.dispose()


@pytest.fixture
async def db_session(session_factory) -> AsyncIterator[AsyncSession]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def test_client(services: Services) -> TestClient:
    """Create test client serving the fixture services."""
    from vims.main import create_app

    get_rate_limiter().reset()
    with TestClient(create_app(services)) as client:
        yield client


def auth_headers(username: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_user_token(USERS[username])}"}


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return auth_headers("admin")


@pytest.fixture
def staff_headers() -> dict[str, str]:
    return auth_headers("staff1")


@pytest.fixture
def make_walk_in():
    return walk_in_form


@pytest.fixture
def make_guest():
    return guest_form


@pytest.fixture
def monotonic() -> FakeMonotonic:
    return FakeMonotonic()


@pytest.fixture
def login():
    """Build bearer headers for a fixed account."""
    return auth_headers
