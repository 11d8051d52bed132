"""Authentication domain logic orchestrating users, OTP, and token issuance."""

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from smartbudget.core.config import settings
from smartbudget.core.exceptions import (
    DuplicateIdentity,
    EmailAlreadyRegistered,
    InvalidCredentials,
    InvalidInput,
    NameRequired,
    NotFound,
    OtpInvalidOrExpired,
    PasswordLoginUnavailable,
)
from smartbudget.core.security import TokenIssuer, get_password_hash, verify_password
from smartbudget.db.models.user import User
from smartbudget.schemas.auth import AuthResponse, UserCreate, UserLogin, UserPublic
from smartbudget.schemas.otp import OTPIssued, OTPRequest, OTPVerify
from smartbudget.services.email import EmailSender
from smartbudget.services.otp import OTPService
from smartbudget.services.users import CreationPolicy, UserLinker

logger = structlog.get_logger(__name__)


class AuthService:
    """High-level service used by API routes for every sign-in flow."""

    def __init__(
        self,
        session: AsyncSession,
        otp_service: OTPService,
        user_linker: UserLinker,
        token_issuer: TokenIssuer,
        email_sender: EmailSender,
        expose_undelivered_otp: bool = settings.expose_undelivered_otp,
        password_min_length: int = settings.PASSWORD_MIN_LENGTH,
    ):
        self.session = session
        self.otp_service = otp_service
        self.user_linker = user_linker
        self.token_issuer = token_issuer
        self.email_sender = email_sender
        self.expose_undelivered_otp = expose_undelivered_otp
        self.password_min_length = password_min_length

    def _session_for(self, user: User, message: str) -> AuthResponse:
        return AuthResponse(
            message=message,
            access_token=self.token_issuer.issue(user.id),
            user=UserPublic.model_validate(user),
        )

    async def register(self, payload: UserCreate) -> AuthResponse:
        """Create a password account and sign it in."""

        if len(payload.password) < self.password_min_length:
            raise InvalidInput(f"Password must be at least {self.password_min_length} characters.")

        if await self.user_linker.get_by_email(payload.email):
            raise EmailAlreadyRegistered()

        try:
            user = await self.user_linker.create_user(
                payload.email,
                payload.name,
                CreationPolicy.PASSWORD,
                password_hash=get_password_hash(payload.password),
            )
        except DuplicateIdentity:
            raise EmailAlreadyRegistered()

        return self._session_for(user, "User created successfully.")

    async def login(self, payload: UserLogin) -> AuthResponse:
        """Authenticate with email and password."""

        user = await self.user_linker.get_by_email(payload.email)
        if not user:
            raise InvalidCredentials()

        if not user.has_password:
            raise PasswordLoginUnavailable()

        if not verify_password(payload.password, user.password_hash):
            logger.info("auth.password_mismatch", user_id=user.id)
            raise InvalidCredentials()

        return self._session_for(user, "Login successful.")

    async def request_otp(self, payload: OTPRequest) -> OTPIssued:
        """Issue a code and try to email it.

        The code stays valid when delivery fails; outside production it is
        returned in the response so the flow can still be completed.
        """

        issued = await self.otp_service.generate(payload.email)
        delivery = await self.email_sender.send_otp_email(payload.email, issued.code)

        if delivery.sent:
            return OTPIssued(message="OTP sent to your email.", expires_in=issued.expires_in, delivered=True)

        logger.warning("otp.undelivered", email=payload.email, error=delivery.error)
        return OTPIssued(
            message="OTP generated, but the email could not be delivered.",
            expires_in=issued.expires_in,
            delivered=False,
            otp=issued.code if self.expose_undelivered_otp else None,
        )

    async def verify_otp(self, payload: OTPVerify) -> AuthResponse:
        """Consume a code and sign in, registering an OTP-only account if needed."""

        existing = await self.user_linker.get_by_email(payload.email)
        # Checked before consuming so the same code can be retried with a name,
        # and only for a valid code so account existence is not revealed.
        if existing is None and not (payload.name or "").strip():
            if not await self.otp_service.is_valid(payload.email, payload.otp):
                raise OtpInvalidOrExpired()
            raise NameRequired()

        await self.otp_service.verify(payload.email, payload.otp)

        user = existing or await self.user_linker.find_or_create_by_email(
            payload.email, payload.name, CreationPolicy.OTP
        )
        return self._session_for(user, "OTP verified successfully.")

    async def get_profile(self, user_id: int) -> User:
        user = await self.user_linker.get_by_id(user_id)
        if not user:
            raise NotFound("User")
        return user
