"""
api/routes/auth.py -- Authentication and self-service profile endpoints.

Routes:
  POST /api/auth/register          -- create a password account; 201 {user, token}
  POST /api/auth/login             -- password login; {user, token}
  POST /api/auth/oauth             -- login with a provider identity; {user, token}
  GET  /api/auth/profile           -- current user (requires auth)
  PUT  /api/auth/profile           -- update own profile (requires auth)
  PUT  /api/auth/change-password   -- change own password (requires auth)
  POST /api/auth/verify            -- mark own account verified (requires auth)
  POST /api/auth/forgot-password   -- always 200, never reveals account existence
  POST /api/auth/reset-password    -- 501, reset confirmation is not built yet
  GET  /api/auth/representatives   -- public list of representatives by rating

Security:
  POST /login, /register and /oauth are rate-limited per client IP.
  login() returns the same 401 for unknown email and wrong password.
  Cache-Control: no-store on every response that carries a token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_limit, register_limit
from api.models import (
    AuthResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    OAuthLoginRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    RepresentativesResponse,
    ResetPasswordRequest,
    UserEnvelope,
    UserResponse,
)
from auth.dependencies import get_current_user, get_user_service
from auth.models import AuthResult, PublicUser
from auth.service import UserService
from core.config import get_settings
from core.errors import ValidationFailedError

# Auth policy:
# - POST /auth/register, /auth/login, /auth/oauth:  public, rate limited
# - POST /auth/forgot-password, /auth/reset-password: public
# - GET  /auth/representatives:                      public
# - everything else:                                 requires auth (get_current_user)
router = APIRouter()

# Profile columns that may be cleared by sending null; name may not.
_NULLABLE_PROFILE_FIELDS = frozenset({"phone", "district", "position", "party"})


def _token_response(result: AuthResult, message: str, status_code: int = 200) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(
            message=message,
            user=UserResponse.from_user(result.user),
            token=result.token,
        ).model_dump(by_alias=True),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(register_limit)
@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(
    request: Request,
    body: RegisterRequest,
    service: UserService = Depends(get_user_service),
) -> JSONResponse:
    """Create an account. 409 if the email or phone is already registered."""
    result = service.register(
        email=body.email,
        password=body.password,
        name=body.name,
        phone=body.phone,
        district=body.district,
        is_representative=body.is_representative,
        position=body.position,
        party=body.party,
    )
    return _token_response(result, "User registered successfully", status_code=201)


@limiter.limit(login_limit)
@router.post("/auth/login", response_model=AuthResponse)
def login(
    request: Request,
    body: LoginRequest,
    service: UserService = Depends(get_user_service),
) -> JSONResponse:
    """Authenticate with email and password.

    Returns the same generic error for unknown email and wrong password
    ("Invalid credentials") to avoid leaking account existence.
    """
    result = service.login(body.email, body.password)
    return _token_response(result, "Login successful")


@limiter.limit(login_limit)
@router.post("/auth/oauth", response_model=AuthResponse)
def oauth_login(
    request: Request,
    body: OAuthLoginRequest,
    service: UserService = Depends(get_user_service),
) -> JSONResponse:
    """Log in (or sign up) with an identity from an OAuth provider."""
    providers = get_settings().oauth_providers
    if body.provider not in providers:
        raise ValidationFailedError(
            details=[{"field": "provider", "message": f"Unsupported provider. Expected one of: {', '.join(providers)}"}]
        )
    result = service.oauth_login(
        provider=body.provider,
        provider_id=body.provider_id,
        email=body.email,
        name=body.name,
        phone=body.phone,
        verified=body.verified,
    )
    return _token_response(result, "OAuth login successful")


@router.post("/auth/forgot-password", response_model=MessageResponse)
def forgot_password(
    body: ForgotPasswordRequest,
    service: UserService = Depends(get_user_service),
) -> MessageResponse:
    service.request_password_reset(body.email)
    return MessageResponse(message="Password reset email sent if account exists")


@router.post("/auth/reset-password", response_model=MessageResponse)
def reset_password(
    body: ResetPasswordRequest,
    service: UserService = Depends(get_user_service),
) -> MessageResponse:
    service.reset_password(body.token, body.new_password)
    return MessageResponse(message="Password has been reset")


@router.get("/auth/representatives", response_model=RepresentativesResponse)
def representatives(service: UserService = Depends(get_user_service)) -> RepresentativesResponse:
    """Representatives ordered by rating, highest first; unrated last."""
    return RepresentativesResponse(
        representatives=[UserResponse.from_user(u) for u in service.get_representatives()],
    )


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/profile", response_model=UserEnvelope)
def get_profile(current_user: PublicUser = Depends(get_current_user)) -> UserEnvelope:
    return UserEnvelope(user=UserResponse.from_user(current_user))


@router.put("/auth/profile", response_model=UserEnvelope)
def update_profile(
    body: ProfileUpdateRequest,
    current_user: PublicUser = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> UserEnvelope:
    """Update the caller's own profile. 409 if the new phone belongs to someone else."""
    changes = {
        k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None or k in _NULLABLE_PROFILE_FIELDS
    }
    user = service.update_profile(current_user.id, **changes)
    return UserEnvelope(message="Profile updated successfully", user=UserResponse.from_user(user))


@router.put("/auth/change-password", response_model=MessageResponse)
def change_password(
    body: ChangePasswordRequest,
    current_user: PublicUser = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> MessageResponse:
    """Change the caller's password. 400 if the current password does not match."""
    service.change_password(current_user.id, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully")


@router.post("/auth/verify", response_model=UserEnvelope)
def verify(
    current_user: PublicUser = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> UserEnvelope:
    user = service.verify_user(current_user.id)
    return UserEnvelope(message="User verified successfully", user=UserResponse.from_user(user))
