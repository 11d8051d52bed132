from smartbudget.schemas.auth import AuthResponse, Token, UserCreate, UserLogin, UserPublic
from smartbudget.schemas.common import Message
from smartbudget.schemas.otp import OTPIssued, OTPRequest, OTPVerify

__all__ = [
    "AuthResponse",
    "Message",
    "OTPIssued",
    "OTPRequest",
    "OTPVerify",
    "Token",
    "UserCreate",
    "UserLogin",
    "UserPublic",
]
