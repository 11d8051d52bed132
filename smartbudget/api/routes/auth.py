"""HTTP route handlers for authentication and OTP operations."""

from fastapi import APIRouter, Depends, status

from smartbudget.api import deps
from smartbudget.schemas.auth import AuthResponse, UserCreate, UserLogin, UserPublic
from smartbudget.schemas.otp import OTPIssued, OTPRequest, OTPVerify
from smartbudget.services.auth import AuthService

router = APIRouter(prefix="/api/auth", tags=["authentication"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register_user(
    payload: UserCreate,
    auth_service: AuthService = Depends(deps.get_auth_service),
) -> AuthResponse:
    """Create a password account and return a session token for it."""

    return await auth_service.register(payload)


@router.post("/login", response_model=AuthResponse)
async def login(
    payload: UserLogin,
    auth_service: AuthService = Depends(deps.get_auth_service),
) -> AuthResponse:
    return await auth_service.login(payload)


@router.post("/otp/generate", response_model=OTPIssued, response_model_exclude_none=True)
async def generate_otp(
    payload: OTPRequest,
    auth_service: AuthService = Depends(deps.get_auth_service),
) -> OTPIssued:
    """Issue a one-time code for login or signup and try to email it."""

    return await auth_service.request_otp(payload)


@router.post("/otp/verify", response_model=AuthResponse)
async def verify_otp(
    payload: OTPVerify,
    auth_service: AuthService = Depends(deps.get_auth_service),
) -> AuthResponse:
    """Consume a one-time code; first use for an unknown email registers it."""

    return await auth_service.verify_otp(payload)


@router.get("/me", response_model=UserPublic)
async def me(
    user_id: int = Depends(deps.get_current_user_id),
    auth_service: AuthService = Depends(deps.get_auth_service),
) -> UserPublic:
    return UserPublic.model_validate(await auth_service.get_profile(user_id))
