"""
API request and response models for homehost REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request fields are all optional strings: presence and format checks belong to
the auth use-cases, which report every problem at once in the 400 envelope
instead of letting Pydantic fail on the first missing field with a 422.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Principal

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/register."""

    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = Field(default=None, alias="confirmPassword")


class LoginRequest(BaseModel):
    """Request body for POST /api/login."""

    email: Optional[str] = None
    password: Optional[str] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str

    @classmethod
    def from_principal(cls, principal: Principal) -> "UserSummary":
        return cls(id=principal.id, username=principal.username, email=principal.email)


class SessionResponse(BaseModel):
    """Response for POST /register (201) and POST /login (200).

    The token is also set as an httpOnly cookie; it is echoed here for
    non-browser clients.
    """

    model_config = ConfigDict(frozen=True)

    user: UserSummary
    token: str


class ProfileUser(BaseModel):
    """Profile fields for GET /api/me, serialized with camelCase timestamps."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    username: str
    email: str
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")


class ProfileResponse(BaseModel):
    """Response for GET /api/me."""

    model_config = ConfigDict(frozen=True)

    user: ProfileUser


class LogoutResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str = "Successfully logged out"


class FieldErrorModel(BaseModel):
    """One itemized problem in an error envelope."""

    model_config = ConfigDict(frozen=True)

    field: str
    message: str


class ErrorResponse(BaseModel):
    """Envelope returned on every 4xx/5xx response."""

    model_config = ConfigDict(frozen=True)

    status: int
    message: str
    errors: list[FieldErrorModel] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
