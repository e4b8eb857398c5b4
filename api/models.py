"""
API request and response models for Monitorium REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Field names are snake_case in Python and camelCase on the wire
(alias_generator=to_camel). populate_by_name=True lets clients send either
form, and FastAPI serializes responses by alias.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from auth.models import PublicUser

# ---------------------------------------------------------------------------
# Shared config
# ---------------------------------------------------------------------------

_REQUEST_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    str_strip_whitespace=True,
)

_RESPONSE_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    frozen=True,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    USER = "USER"
    REPRESENTATIVE = "REPRESENTATIVE"
    ADMIN = "ADMIN"


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/auth/register."""

    model_config = _REQUEST_CONFIG

    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    name: str = Field(min_length=2, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=32)
    district: Optional[str] = Field(default=None, max_length=255)
    is_representative: bool = False
    position: Optional[str] = Field(default=None, max_length=255)
    party: Optional[str] = Field(default=None, max_length=255)


class LoginRequest(BaseModel):
    """Request body for POST /api/auth/login.

    No length rules on password here: a too-short password must produce the
    same 401 as a wrong one, not a 400 that hints at the password policy.
    """

    model_config = _REQUEST_CONFIG

    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class OAuthLoginRequest(BaseModel):
    """Request body for POST /api/auth/oauth.

    The client has already completed the provider flow; the server trusts
    the identity it posts. provider is checked against Settings.oauth_providers
    in the route.
    """

    model_config = _REQUEST_CONFIG

    provider: str = Field(min_length=1, max_length=30)
    provider_id: str = Field(min_length=1, max_length=255)
    email: EmailStr
    name: str = Field(min_length=2, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=32)
    verified: bool = True


class ProfileUpdateRequest(BaseModel):
    """Request body for PUT /api/auth/profile."""

    model_config = _REQUEST_CONFIG

    name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=32)
    district: Optional[str] = Field(default=None, max_length=255)
    position: Optional[str] = Field(default=None, max_length=255)
    party: Optional[str] = Field(default=None, max_length=255)


class ChangePasswordRequest(BaseModel):
    """Request body for PUT /api/auth/change-password."""

    model_config = _REQUEST_CONFIG

    current_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=6, max_length=128)


class ForgotPasswordRequest(BaseModel):
    model_config = _REQUEST_CONFIG

    email: EmailStr


class ResetPasswordRequest(BaseModel):
    model_config = _REQUEST_CONFIG

    token: str = Field(min_length=1)
    new_password: str = Field(min_length=6, max_length=128)


# ---------------------------------------------------------------------------
# Users -- request models
# ---------------------------------------------------------------------------


class UserUpdateRequest(BaseModel):
    """Request body for PUT /api/users/{user_id}.

    email, role, verified, rating and balance are administrative fields; the
    route rejects them with 403 unless the caller is an ADMIN.
    """

    model_config = _REQUEST_CONFIG

    name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=32)
    district: Optional[str] = Field(default=None, max_length=255)
    position: Optional[str] = Field(default=None, max_length=255)
    party: Optional[str] = Field(default=None, max_length=255)
    role: Optional[RoleEnum] = None
    verified: Optional[bool] = None
    rating: Optional[float] = Field(default=None, ge=0)
    balance: Optional[int] = Field(default=None, ge=0)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Sanitized user as returned by every endpoint. Never carries a password field."""

    model_config = _RESPONSE_CONFIG

    id: str
    email: str
    name: str
    role: str
    phone: Optional[str] = None
    district: Optional[str] = None
    verified: bool
    is_representative: bool
    position: Optional[str] = None
    party: Optional[str] = None
    rating: Optional[float] = None
    balance: int
    last_activity: Optional[str] = None
    oauth_provider: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: PublicUser) -> "UserResponse":
        """Build a UserResponse from a domain PublicUser.

        Factory Method pattern -- the mapping lives here, colocated with the
        output model, rather than scattered across route handlers.
        """
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            phone=user.phone,
            district=user.district,
            verified=user.verified,
            is_representative=user.is_representative,
            position=user.position,
            party=user.party,
            rating=user.rating,
            balance=user.balance,
            last_activity=user.last_activity,
            oauth_provider=user.oauth_provider,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class AuthResponse(BaseModel):
    """Response for register, login and OAuth login."""

    model_config = _RESPONSE_CONFIG

    message: str
    user: UserResponse
    token: str


class UserEnvelope(BaseModel):
    model_config = _RESPONSE_CONFIG

    message: Optional[str] = None
    user: UserResponse


class UserListResponse(BaseModel):
    model_config = _RESPONSE_CONFIG

    users: list[UserResponse]


class RepresentativesResponse(BaseModel):
    model_config = _RESPONSE_CONFIG

    representatives: list[UserResponse]


class MessageResponse(BaseModel):
    model_config = _RESPONSE_CONFIG

    message: str


class ErrorField(BaseModel):
    """One per-field validation failure."""

    model_config = ConfigDict(frozen=True)

    field: str
    message: str


class ErrorResponse(BaseModel):
    """Error envelope returned on 4xx/5xx responses.

    details is present only for validation failures.
    """

    model_config = ConfigDict(frozen=True)

    error: str
    details: Optional[list[ErrorField]] = None


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "OK"
    timestamp: str
