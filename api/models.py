"""
API response models for AuthGate REST endpoints.

Request bodies are NOT modelled here: the gates scan the raw
field mapping (every supplied field is checked, not just known ones), and a
Pydantic model would reject or drop fields before the gate sees them.

Every response, success or failure, uses the same {status, msg} envelope.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import User


class UserResponse(BaseModel):
    """Public view of a user. Secret hash fields have no place in this model."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    first_name: str = Field(serialization_alias="firstName")
    last_name: str = Field(serialization_alias="lastName")
    email: str
    is_account_verified: bool
    created_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            is_account_verified=user.is_account_verified,
            created_at=user.created_at,
        )


class MessageResponse(BaseModel):
    """Success envelope, optionally carrying the affected user."""

    model_config = ConfigDict(frozen=True)

    status: str = "success"
    msg: str
    user: Optional[UserResponse] = None


class ErrorResponse(BaseModel):
    """Error envelope returned on every 4xx/5xx response."""

    model_config = ConfigDict(frozen=True)

    status: str = "error"
    msg: str


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
