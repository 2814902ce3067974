"""Explicit success-or-error outcome for record-store operations."""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict

from app.core.exceptions import AppError

T = TypeVar("T")


class Result(BaseModel, Generic[T]):
    """Either a value or a typed AppError, never both.

    Callers branch on ``ok`` / ``error`` or call ``unwrap()`` to get the value
    and re-raise the error (HTTP handlers do the latter so the app's
    exception handlers render it).
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    value: T | None = None
    error: AppError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: AppError) -> "Result[T]":
        return cls(error=error)
