# storefront/schemas/user.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import EmailStr, ConfigDict, field_validator
from sqlmodel import SQLModel, Field

# App-level roles. Guests have no row, so they are not listed here.
Role = Literal["user", "admin"]


def _normalize_email(v: str) -> str:
    return v.strip().lower()


class RegisterRequest(SQLModel):
    """
    Payload for creating an account.

    The password is forwarded to Supabase Auth and never stored here.
    """

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=6)
    name: str | None = Field(default=None, max_length=50)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v) if isinstance(v, str) else v

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class LoginRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v) if isinstance(v, str) else v


class UserRead(SQLModel):
    """Response schema returned to clients."""

    id: uuid.UUID
    email: str
    name: str
    role: Role
    created_at: datetime


class AuthResult(SQLModel):
    """
    Register/login response.

    access_token is None when Supabase requires email confirmation before
    the first sign-in.
    """

    user: UserRead
    access_token: str | None = None
    token_type: str = "bearer"

