"""Error taxonomy shared by services and route handlers.

Caller-facing errors subclass `HTTPException` so services can raise them
directly and FastAPI renders them without extra handlers. The remaining
classes are internal signals that services recover from or translate.
"""

from fastapi import HTTPException, status


class InvalidInput(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class NameRequired(InvalidInput):
    def __init__(self):
        super().__init__("Name is required for registration.")


class EmailAlreadyRegistered(InvalidInput):
    def __init__(self):
        super().__init__("User already exists.")


class Unauthenticated(HTTPException):
    """Any authentication failure; never says whether a token expired or was forged."""

    def __init__(self, detail: str = "Invalid or expired token."):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class InvalidCredentials(Unauthenticated):
    def __init__(self):
        super().__init__("Invalid credentials.")


class PasswordLoginUnavailable(Unauthenticated):
    """Raised for accounts that were created without a password."""

    def __init__(self):
        super().__init__("This account has no password. Please use OTP login.")


class OtpInvalidOrExpired(HTTPException):
    def __init__(self):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired OTP.")


class OtpRequestThrottled(HTTPException):
    def __init__(self, retry_after: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Please wait before requesting another code.",
            headers={"Retry-After": str(max(retry_after, 1))},
        )


class NotFound(HTTPException):
    def __init__(self, entity: str):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=f"{entity} not found.")


class DependencyUnavailable(HTTPException):
    def __init__(self, detail: str = "Service temporarily unavailable."):
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)


class DuplicateIdentity(Exception):
    """A unique constraint on email or external id rejected an insert."""


class ExternalIdentityError(Exception):
    """The external provider rejected the token or could not be reached."""


class ExternalIdentityConflict(Exception):
    """The matched account is already linked to a different external id."""
