"""
Shared fixtures for the Smart Budget test suite.

Test strategy:
1. Unit tests drive services directly against a throwaway SQLite file.
2. API tests go through the FastAPI app with dependencies overridden.
3. No real network, SMTP, or Redis (fakeredis and httpx mock transports).
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("OTP_RESEND_COOLDOWN_SECONDS", "0")

from datetime import timedelta

import pytest
from fakeredis import FakeAsyncRedis
from httpx import ASGITransport, AsyncClient

from smartbudget.api import deps
from smartbudget.core.exceptions import ExternalIdentityError
from smartbudget.core.security import TokenIssuer
from smartbudget.db import models  # noqa: F401
from smartbudget.db.base import Base
from smartbudget.db.session import build_engine, build_session_factory
from smartbudget.services.email import DeliveryResult
from smartbudget.services.identity_provider import ExternalIdentity
from smartbudget.services.otp import OTPService
from smartbudget.services.users import UserLinker

TEST_SECRET = "unit-test-signing-secret"


class RecordingEmailSender:
    """Email collaborator double that remembers what it was asked to send."""

    def __init__(self, succeed: bool = False):
        self.succeed = succeed
        self.sent: list[tuple[str, str]] = []

    async def send_otp_email(self, email: str, otp_code: str) -> DeliveryResult:
        self.sent.append((email, otp_code))
        if self.succeed:
            return DeliveryResult(sent=True)
        return DeliveryResult(sent=False, error="SMTP settings are incomplete.")


class FakeIdentityProvider:
    """External provider double keyed by bearer token."""

    def __init__(self, identities: dict[str, ExternalIdentity] | None = None):
        self.identities = identities or {}
        self.calls: list[str] = []

    async def fetch_identity(self, token: str) -> ExternalIdentity:
        self.calls.append(token)
        try:
            return self.identities[token]
        except KeyError:
            raise ExternalIdentityError("External provider rejected the token (401).")


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'smartbudget-test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def redis():
    client = FakeAsyncRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def token_issuer():
    return TokenIssuer(TEST_SECRET, expires_delta=timedelta(days=7))


@pytest.fixture
def otp_service(session, redis):
    return OTPService(session, redis, ttl_seconds=600, cooldown_seconds=0)


@pytest.fixture
def user_linker(session):
    return UserLinker(session)


@pytest.fixture
def email_sender():
    return RecordingEmailSender()


@pytest.fixture
def identity_provider():
    """None means external auth is not configured; tests swap in a FakeIdentityProvider."""
    return None


@pytest.fixture
def app(session_factory, redis, token_issuer, email_sender, identity_provider):
    from smartbudget.main import create_application

    application = create_application()

    async def _session_override():
        async with session_factory() as session:
            yield session

    application.dependency_overrides[deps.get_db_session] = _session_override
    application.dependency_overrides[deps.get_redis] = lambda: redis
    application.dependency_overrides[deps.get_token_issuer] = lambda: token_issuer
    application.dependency_overrides[deps.get_email_sender] = lambda: email_sender
    application.dependency_overrides[deps.get_identity_provider] = lambda: identity_provider
    return application


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_header(token_issuer):
    def _header(user_id: int) -> dict[str, str]:
        return {"Authorization": f"Bearer {token_issuer.issue(user_id)}"}

    return _header
