"""Pydantic schemas for OTP generation and verification flows."""

from pydantic import BaseModel, EmailStr, Field


class OTPRequest(BaseModel):
    """Payload used to request a new OTP for a specific email."""

    email: EmailStr
    name: str | None = None


class OTPVerify(BaseModel):
    """Payload used when submitting a received OTP code for validation."""

    email: EmailStr
    otp: str = Field(min_length=1, max_length=16)
    # Only needed when the email has no account yet.
    name: str | None = None


class OTPIssued(BaseModel):
    message: str
    expires_in: int
    delivered: bool
    otp: str | None = None
