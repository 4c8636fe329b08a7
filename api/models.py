"""
API request and response models for cookie-auth REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import MAX_PASSWORD_LENGTH, MAX_USERNAME_LENGTH, MIN_PASSWORD_LENGTH, User

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CredentialsRequest(BaseModel):
    """Body for POST /api/v1/auth/register and POST /api/v1/auth/login.

    Whitespace is stripped from the username only. Passwords are taken
    verbatim -- leading/trailing spaces are part of the secret.
    """

    username: str = Field(min_length=1, max_length=MAX_USERNAME_LENGTH)
    password: str = Field(min_length=1, max_length=MAX_PASSWORD_LENGTH)

    def normalized_username(self) -> str:
        return self.username.strip()


class RegisterRequest(CredentialsRequest):
    password: str = Field(min_length=MIN_PASSWORD_LENGTH, max_length=MAX_PASSWORD_LENGTH)


class LoginRequest(CredentialsRequest):
    pass


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class MeResponse(BaseModel):
    """Identity of the session's user. Never includes the password hash."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    username: str

    @classmethod
    def from_user(cls, user: User) -> "MeResponse":
        return cls(user_id=user.id, username=user.username)


class MessageResponse(BaseModel):
    message: str


class ErrorDetail(BaseModel):
    """Inner error object carried by ErrorResponse."""

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Uniform error envelope for every non-2xx JSON response."""

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
