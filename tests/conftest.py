from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from chatrelay.config import AdminPrincipal, settings
from chatrelay.database import Base
from chatrelay.services.auth_service import PrincipalStore, hash_password
from chatrelay.services.challenge_store import InMemoryChallengeStore
from chatrelay.services.result import Result
from chatrelay.services.two_factor_service import TwoFactorManager

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "s3cret-pass"
ADMIN_PHONE = "5512345678"
JWT_TEST_SECRET = "test-secret-for-signing-admin-access-tokens"


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta) -> None:
        self.now = self.now + delta


class RecordingChannel:
    """Delivery channel stand-in that remembers every code it sent."""

    def __init__(self, requires_contact: bool = True, ok: bool = True):
        self.requires_contact = requires_contact
        self.ok = ok
        self.sent: list[tuple[str, str]] = []

    def address_for(self, principal):
        return principal.phone_number if self.requires_contact else principal.telegram_chat_id

    def send(self, address, text):
        self.sent.append((address, text))
        if self.ok:
            return Result.success({"ok": True})
        return Result.failure("boom", "api_error")


@pytest.fixture(autouse=True)
def jwt_secret(monkeypatch):
    monkeypatch.setattr(settings, "jwt_secret", JWT_TEST_SECRET)
    return JWT_TEST_SECRET


@pytest.fixture
def db_session():
    """SQLite in-memory session with the schema created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture(scope="session")
def admin_principal():
    return AdminPrincipal(
        email=ADMIN_EMAIL,
        password_hash=hash_password(ADMIN_PASSWORD),
        phone_number=ADMIN_PHONE,
        telegram_chat_id="998877",
    )


@pytest.fixture
def principal_store(admin_principal):
    return PrincipalStore([admin_principal])


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def whatsapp_channel():
    return RecordingChannel(requires_contact=True)


@pytest.fixture
def telegram_channel():
    return RecordingChannel(requires_contact=False)


@pytest.fixture
def two_factor_manager(principal_store, whatsapp_channel, telegram_channel, clock):
    return TwoFactorManager(
        store=InMemoryChallengeStore(),
        principals=principal_store,
        channels={"whatsapp": whatsapp_channel, "telegram": telegram_channel},
        ttl_seconds=300,
        country_code="52",
        clock=clock,
    )


@pytest.fixture
def messenger():
    """WhatsApp client mock that accepts every message."""
    client = Mock()
    client.send_text.return_value = Result.success({"messages": [{"id": "wamid.1"}]})
    return client
