"""Authentication schemas."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class LoginRequest(BaseModel):
    """
    Login request schema.

    `identifier` is the student id, the father's CNIC or the staff email,
    depending on `login_type`.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    identifier: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)
    login_type: Literal["student", "parent", "staff"] = "staff"


class TokenResponse(BaseModel):
    """Token response schema."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    """User response schema for login."""

    id: str
    email: str
    full_name: str | None = None
    role: str | None = None


class LoginResponse(TokenResponse):
    """Login response schema."""

    user: UserResponse
