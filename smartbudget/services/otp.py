"""OTP issuance and single-use verification backed by the database.

Redis only carries the per-email resend cooldown; the codes themselves live in
`otp_codes` so consumption can use a conditional UPDATE.
"""

import secrets
from dataclasses import dataclass
from typing import Optional

import structlog
from redis.asyncio import Redis
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from smartbudget.core.clock import expires_in, utcnow
from smartbudget.core.config import settings
from smartbudget.core.exceptions import InvalidInput, OtpInvalidOrExpired, OtpRequestThrottled
from smartbudget.db.models.otp import OneTimeCode

logger = structlog.get_logger(__name__)

_redis_client: Optional[Redis] = None


def get_redis_client() -> Redis:
    """Return a lazily initialized Redis client shared across the service."""
    global _redis_client
    if _redis_client is None:
        _redis_client = Redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis_client


async def close_redis_client() -> None:
    """Close the shared Redis client; invoked during application shutdown."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


def _cooldown_key(email: str) -> str:
    return f"otp:cooldown:{email}"


def generate_otp(length: int = settings.OTP_LENGTH) -> str:
    """Create a zero-padded numeric OTP with configurable length."""
    upper_bound = 10 ** length
    return f"{secrets.randbelow(upper_bound):0{length}d}"


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


@dataclass
class IssuedCode:
    code: str
    expires_in: int


class OTPService:
    """Issue, verify, and single-use-consume one-time codes.

    Delivery is not this class's concern: `generate` persists and returns the
    code, and the caller decides how to hand it to the user.
    """

    def __init__(
        self,
        session: AsyncSession,
        redis_client: Redis,
        ttl_seconds: int = settings.OTP_EXPIRE_SECONDS,
        cooldown_seconds: int = settings.OTP_RESEND_COOLDOWN_SECONDS,
        length: int = settings.OTP_LENGTH,
    ):
        self.session = session
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds
        self.cooldown_seconds = cooldown_seconds
        self.length = length

    async def _enforce_cooldown(self, email: str) -> None:
        if self.cooldown_seconds <= 0:
            return
        acquired = await self.redis.set(_cooldown_key(email), "1", ex=self.cooldown_seconds, nx=True)
        if not acquired:
            remaining = await self.redis.ttl(_cooldown_key(email))
            logger.info("otp.throttled", email=email, retry_after=remaining)
            raise OtpRequestThrottled(retry_after=remaining if remaining and remaining > 0 else self.cooldown_seconds)

    async def generate(self, email: str) -> IssuedCode:
        """Persist a fresh code for `email`, replacing any unused earlier ones."""

        email = normalize_email(email)
        if not email:
            raise InvalidInput("Email is required.")

        await self._enforce_cooldown(email)

        code = generate_otp(self.length)
        try:
            await self.session.execute(
                delete(OneTimeCode).where(OneTimeCode.email == email, OneTimeCode.is_used.is_(False))
            )
            self.session.add(OneTimeCode(email=email, code=code, expires_at=expires_in(self.ttl_seconds)))
            await self.session.commit()
        except Exception:
            # No code was stored, so the cooldown must not lock the email out.
            await self.session.rollback()
            if self.cooldown_seconds > 0:
                await self.redis.delete(_cooldown_key(email))
            raise

        logger.info("otp.issued", email=email, expires_in=self.ttl_seconds)
        return IssuedCode(code=code, expires_in=self.ttl_seconds)

    async def _candidates(self, email: str, code: str) -> list[OneTimeCode]:
        rows = await self.session.scalars(
            select(OneTimeCode)
            .where(
                OneTimeCode.email == email,
                OneTimeCode.code == code,
                OneTimeCode.is_used.is_(False),
                OneTimeCode.expires_at > utcnow(),
            )
            .order_by(OneTimeCode.created_at.desc(), OneTimeCode.id.desc())
        )
        return list(rows.all())

    async def is_valid(self, email: str, code: str) -> bool:
        """Whether `code` is currently usable for `email`, without consuming it."""

        email = normalize_email(email)
        code = (code or "").strip()
        if not email or not code:
            return False
        return bool(await self._candidates(email, code))

    async def verify(self, email: str, code: str) -> OneTimeCode:
        """Consume a matching unused, unexpired code or raise `OtpInvalidOrExpired`.

        Candidates are tried newest first. Each claim is an UPDATE guarded by
        `is_used = false`, so of two concurrent callers only one sees a row
        count of one.
        """

        email = normalize_email(email)
        code = (code or "").strip()
        if not email or not code:
            raise InvalidInput("Email and OTP are required.")

        for record in await self._candidates(email, code):
            result = await self.session.execute(
                update(OneTimeCode)
                .where(OneTimeCode.id == record.id, OneTimeCode.is_used.is_(False))
                .values(is_used=True)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
            if result.rowcount == 1:
                await self.session.refresh(record)
                logger.info("otp.consumed", email=email, otp_id=record.id)
                return record

        logger.info("otp.rejected", email=email)
        raise OtpInvalidOrExpired()

