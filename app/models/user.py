from datetime import datetime, timezone
from typing import Any

from beanie import Document, Indexed
from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    """Naive UTC truncated to milliseconds, the precision BSON dates keep."""
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+$"


class User(Document):
    clerk_id: Indexed(str, unique=True)
    email: Indexed(str, unique=True)
    name: str
    password: str  # credential reference; never serialised back out
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    photo: str | None = None
    plan_id: int = 1
    credit_balance: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "users"

    def to_public(self) -> dict[str, Any]:
        """Plain JSON-safe copy; the credential reference is dropped."""
        return self.model_dump(mode="json", exclude={"password"})


class UserCreate(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    clerk_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    email: str = Field(min_length=3, pattern=_EMAIL_PATTERN)
    password: str = Field(min_length=1)
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    photo: str | None = None
    plan_id: int = 1


class UserUpdate(BaseModel):
    """Partial update; credit_balance and clerk_id are not updatable here."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str | None = Field(default=None, min_length=1)
    email: str | None = Field(default=None, min_length=3, pattern=_EMAIL_PATTERN)
    password: str | None = Field(default=None, min_length=1)
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    photo: str | None = None
    plan_id: int | None = None

    @field_validator("name", "email", "password", "plan_id")
    @classmethod
    def _not_null(cls, v):
        if v is None:
            raise ValueError("may not be null")
        return v
