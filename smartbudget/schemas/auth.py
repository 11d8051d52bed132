"""Pydantic schemas for authentication-related payloads and responses."""

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class UserBase(BaseModel):
    """Base fields shared across user-related schemas."""

    email: EmailStr


class UserCreate(UserBase):
    """Payload for password registration requests."""

    name: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1)


class UserLogin(UserBase):
    """Payload for password login attempts."""

    password: str = Field(min_length=1)


class UserPublic(UserBase):
    """User fields safe to hand back to the client."""

    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class Token(BaseModel):
    """Bearer token response returned after successful authentication."""

    access_token: str
    token_type: str = "bearer"


class AuthResponse(Token):
    """Token plus the user it was issued for."""

    message: str
    user: UserPublic
