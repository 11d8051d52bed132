"""Dependency providers used by FastAPI endpoints.

These helpers expose database sessions, Redis clients, process-wide
collaborators, and composed services through FastAPI's dependency injection
system so route handlers remain thin. Tests swap any of them through
`app.dependency_overrides`.
"""

from functools import lru_cache
from typing import AsyncGenerator

from fastapi import Depends, Header
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from smartbudget.core.config import settings
from smartbudget.core.security import TokenIssuer
from smartbudget.db.session import get_session
from smartbudget.services.auth import AuthService
from smartbudget.services.credentials import CredentialVerifier
from smartbudget.services.email import EmailSender
from smartbudget.services.expenses import ExpenseService
from smartbudget.services.identity_provider import ExternalIdentityProvider
from smartbudget.services.otp import OTPService, get_redis_client
from smartbudget.services.reminders import ReminderService
from smartbudget.services.settlements import SettlementService
from smartbudget.services.users import UserLinker


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async SQLAlchemy session tied to the shared engine."""

    async for session in get_session():
        yield session


def get_redis() -> Redis:
    """Return a singleton Redis client used for OTP resend throttling."""
    return get_redis_client()


@lru_cache
def get_token_issuer() -> TokenIssuer:
    """Build the issuer once so the signing secret is resolved (and warned about) once."""
    return TokenIssuer.from_settings(settings)


@lru_cache
def get_identity_provider() -> ExternalIdentityProvider | None:
    return ExternalIdentityProvider.from_settings(settings)


@lru_cache
def get_email_sender() -> EmailSender:
    return EmailSender(settings)


def get_user_linker(session: AsyncSession = Depends(get_db_session)) -> UserLinker:
    return UserLinker(session)


def get_otp_service(
    session: AsyncSession = Depends(get_db_session),
    redis: Redis = Depends(get_redis),
) -> OTPService:
    return OTPService(session, redis)


def get_auth_service(
    session: AsyncSession = Depends(get_db_session),
    otp_service: OTPService = Depends(get_otp_service),
    user_linker: UserLinker = Depends(get_user_linker),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
    email_sender: EmailSender = Depends(get_email_sender),
) -> AuthService:
    """Assemble AuthService from the request session and process-wide collaborators."""

    return AuthService(
        session=session,
        otp_service=otp_service,
        user_linker=user_linker,
        token_issuer=token_issuer,
        email_sender=email_sender,
        expose_undelivered_otp=settings.expose_undelivered_otp,
        password_min_length=settings.PASSWORD_MIN_LENGTH,
    )


def get_credential_verifier(
    user_linker: UserLinker = Depends(get_user_linker),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
    identity_provider: ExternalIdentityProvider | None = Depends(get_identity_provider),
) -> CredentialVerifier:
    return CredentialVerifier(token_issuer, user_linker, identity_provider)


async def get_current_user_id(
    authorization: str | None = Header(default=None),
    verifier: CredentialVerifier = Depends(get_credential_verifier),
) -> int:
    """Gate for protected routes: resolve the bearer token or answer 401."""

    return await verifier.authenticate(authorization)


def get_expense_service(
    session: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
) -> ExpenseService:
    return ExpenseService(session, user_id)


def get_settlement_service(
    session: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
) -> SettlementService:
    return SettlementService(session, user_id)


def get_reminder_service(
    session: AsyncSession = Depends(get_db_session),
    user_id: int = Depends(get_current_user_id),
) -> ReminderService:
    return ReminderService(session, user_id)
