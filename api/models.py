"""
API request and response models for Warden REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Separation of concerns: auth/ models = domain truth; api/ models = API contract.

Request models only check shape (presence, type, length caps). Blank-after-
trim checks and role validation live in AuthController so they apply to
every caller, not just HTTP.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Identity

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /signup. role is optional and defaults to "user".

    No str_strip_whitespace here: passwords are taken verbatim. The controller
    trims username and email itself.
    """

    username: str = Field(max_length=255)
    email: str = Field(max_length=320)
    password: str = Field(max_length=72)
    role: Optional[str] = None


class LoginRequest(BaseModel):
    """Request body for POST /login."""

    email: str = Field(max_length=320)
    password: str = Field(max_length=72)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserOut(BaseModel):
    """Public view of a user. Never includes the password hash."""

    model_config = ConfigDict(frozen=True)

    id: str
    username: str
    email: str
    role: str

    @classmethod
    def from_identity(cls, identity: Identity) -> "UserOut":
        """Factory Method -- the domain-to-transport mapping lives with the output model."""
        return cls(
            id=identity.id,
            username=identity.username,
            email=identity.email,
            role=identity.role.value,
        )


class SignupResponse(BaseModel):
    message: str
    user: UserOut


class LoginResponse(BaseModel):
    message: str
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserOut


class ProfileResponse(BaseModel):
    user: UserOut


class UsersResponse(BaseModel):
    users: list[UserOut]


class DashboardResponse(BaseModel):
    message: str
    user: UserOut


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    components: dict[str, str]


class ErrorResponse(BaseModel):
    """Standard error envelope returned by every exception handler."""

    message: str
    code: str
    detail: Optional[str] = None
