"""Password hashing and the self-verifying session tokens handed to clients."""

from datetime import datetime, timedelta, timezone

import structlog
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from smartbudget.core.config import DEV_SECRET_KEY, Settings
from smartbudget.core.exceptions import InvalidInput

logger = structlog.get_logger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Older clients read `id`; both carry the same user id.
USER_ID_CLAIM = "userId"
LEGACY_USER_ID_CLAIM = "id"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


class TokenError(Exception):
    """Base class for local token failures."""


class TokenInvalid(TokenError):
    """Bad signature, malformed payload, or no usable user id claim."""


class TokenExpired(TokenError):
    """Signature is fine but the embedded expiry has passed."""


def resolve_signing_secret(settings: Settings) -> str:
    """Return the configured secret, falling back to the development secret loudly."""

    if settings.SECRET_KEY:
        return settings.SECRET_KEY
    if settings.is_production:
        logger.error("security.default_secret_in_production", hint="Set SECRET_KEY in the environment.")
    else:
        logger.warning("security.default_secret", hint="SECRET_KEY is unset; using the development secret.")
    return DEV_SECRET_KEY


class TokenIssuer:
    """Mint and verify HS256 JWTs that embed the canonical user id.

    Stateless: every method is a pure function of its arguments, the signing
    secret fixed at construction, and the current time.
    """

    def __init__(self, secret: str, algorithm: str = "HS256", expires_delta: timedelta = timedelta(days=7)):
        if not secret:
            raise ValueError("A signing secret is required.")
        self.secret = secret
        self.algorithm = algorithm
        self.expires_delta = expires_delta

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenIssuer":
        return cls(
            secret=resolve_signing_secret(settings),
            algorithm=settings.ALGORITHM,
            expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        )

    def issue(self, user_id: int | str | None, now: datetime | None = None) -> str:
        """Return a signed token for `user_id` that expires after `expires_delta`."""

        if user_id is None or (isinstance(user_id, str) and not user_id.strip()):
            raise InvalidInput("A user id is required to issue a token.")

        issued_at = now or datetime.now(timezone.utc)
        claims = {
            USER_ID_CLAIM: user_id,
            LEGACY_USER_ID_CLAIM: user_id,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self.expires_delta).timestamp()),
        }
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def verify(self, token: str | None) -> int:
        """Return the user id carried by `token` or raise a `TokenError`."""

        if not token:
            raise TokenInvalid("Token is missing.")

        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except ExpiredSignatureError as exc:
            raise TokenExpired("Token has expired.") from exc
        except JWTError as exc:
            raise TokenInvalid("Token signature or payload is invalid.") from exc

        raw_user_id = payload.get(USER_ID_CLAIM)
        if raw_user_id in (None, ""):
            raw_user_id = payload.get(LEGACY_USER_ID_CLAIM)
        if raw_user_id in (None, ""):
            raise TokenInvalid("Token carries no user id.")

        if isinstance(raw_user_id, int) and not isinstance(raw_user_id, bool):
            return raw_user_id
        if isinstance(raw_user_id, str) and raw_user_id.isascii() and raw_user_id.isdigit():
            return int(raw_user_id)
        raise TokenInvalid("Token user id is not usable.")
