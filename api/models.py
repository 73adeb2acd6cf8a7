"""
API request and response models for Foundex REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Missing or malformed fields fail validation here; api/main.py answers those
with 400 invalid_input before any handler runs.
"""

from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

from auth.models import User, normalize_email
from auth.passwords import MAX_PASSWORD_BYTES

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

URL_PATTERN = r"^https?://\S+$"

_Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
_Url = Annotated[str, StringConstraints(strip_whitespace=True, max_length=2048, pattern=URL_PATTERN)]


def _fits_bcrypt(value: str) -> str:
    """Reject passwords whose UTF-8 encoding bcrypt cannot take in full."""
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    founder = "founder"
    investor = "investor"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class _EmailBody(BaseModel):
    """Base for request bodies carrying an email. Normalizes before validation.

    Only the email is trimmed. Passwords and reset codes are taken verbatim.
    """

    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)

    @field_validator("email", mode="before")
    @classmethod
    def normalize(cls, value):
        if isinstance(value, str):
            return normalize_email(value)
        return value


class RegisterRequest(_EmailBody):
    """Request body for POST /api/v1/auth/register."""

    full_name: _Name
    password: str = Field(min_length=1, max_length=MAX_PASSWORD_BYTES)
    user_type: RoleEnum

    @field_validator("password")
    @classmethod
    def check_password_bytes(cls, value: str) -> str:
        return _fits_bcrypt(value)


class LoginRequest(_EmailBody):
    """Request body for POST /api/v1/auth/login."""

    password: str = Field(min_length=1, max_length=255)


class ProfileUpdate(BaseModel):
    """Request body for PATCH /api/v1/auth/profile. Role is fixed and not accepted.

    Every field is optional and only the fields present in the body change.
    The two URLs may be sent as null to clear them; full_name may not.
    """

    full_name: Optional[_Name] = None
    linkedin_url: Optional[_Url] = None
    profile_image_url: Optional[_Url] = None

    @field_validator("full_name")
    @classmethod
    def full_name_not_null(cls, value):
        if value is None:
            raise ValueError("full_name cannot be cleared")
        return value

    def changes(self) -> dict:
        return {name: getattr(self, name) for name in self.model_fields_set}


class ResetRequest(_EmailBody):
    """Request body for POST /api/v1/auth/forgot-password/request."""


class ResetVerifyRequest(_EmailBody):
    """Request body for POST /api/v1/auth/forgot-password/verify.

    The code is compared exactly as sent -- no trimming, no case folding.
    """

    code: str = Field(min_length=1, max_length=32)


class ResetCompleteRequest(ResetVerifyRequest):
    """Request body for POST /api/v1/auth/forgot-password/reset."""

    new_password: str = Field(min_length=1, max_length=MAX_PASSWORD_BYTES, alias="newPassword")

    @field_validator("new_password")
    @classmethod
    def check_password_bytes(cls, value: str) -> str:
        return _fits_bcrypt(value)

    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user record. Never includes the hash or reset fields."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    full_name: str
    role: str
    linkedin_url: Optional[str] = None
    profile_image_url: Optional[str] = None
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id or "",
            email=user.email,
            full_name=user.full_name,
            role=user.role,
            linkedin_url=user.linkedin_url,
            profile_image_url=user.profile_image_url,
            created_at=user.created_at or "",
        )


class AuthResponse(BaseModel):
    """Response for register and login. token duplicates the cookie for API clients."""

    model_config = ConfigDict(frozen=True)

    user: UserResponse
    token: str
    token_type: str = "bearer"
    expires_in: int


class MeResponse(BaseModel):
    """Response for GET /api/v1/auth/me."""

    model_config = ConfigDict(frozen=True)

    user: UserResponse
    is_administrator: bool


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
