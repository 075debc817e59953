# app/errors.py
from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

logger = logging.getLogger("hyprive.errors")

T = TypeVar("T")

GENERIC_FAILURE_MESSAGE = "Something went wrong. Please try again."


class CoreError(Exception):
    """
    Base for every business error the settlement core reports.
    `code` is stable and machine readable; `message` is safe to render.
    """

    code = "INTERNAL_ERROR"
    status = 500
    default_message = GENERIC_FAILURE_MESSAGE

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def as_dict(self) -> dict[str, Any]:
        return {"success": False, "error": self.message, "code": self.code}


class ValidationError(CoreError):
    code = "VALIDATION_ERROR"
    status = 400
    default_message = "Invalid request"


class NotFoundError(CoreError):
    code = "NOT_FOUND"
    status = 404
    default_message = "Resource not found"

    @classmethod
    def for_resource(cls, resource: str) -> "NotFoundError":
        return cls(f"{resource} not found")


class ForbiddenError(CoreError):
    code = "FORBIDDEN"
    status = 403
    default_message = "Access forbidden"


class IllegalTransitionError(CoreError):
    code = "ILLEGAL_TRANSITION"
    status = 409
    default_message = "Action not allowed for the current status"


class ConflictError(CoreError):
    code = "CONFLICT"
    status = 409
    default_message = "The record was modified concurrently. Reload and try again."


class InsufficientCreditError(CoreError):
    code = "INSUFFICIENT_CREDIT"
    status = 409
    default_message = "Insufficient wallet balance and credit"


class InternalError(CoreError):
    code = "INTERNAL_ERROR"
    status = 500


@dataclass(frozen=True)
class Result(Generic[T]):
    value: Optional[T] = None
    error: Optional[CoreError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: CoreError) -> "Result[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


def returns_result(fn: Callable[..., T]) -> Callable[..., Result[T]]:
    """
    Turn a raising operation into one that returns a Result.

    Business errors come back tagged; anything else is logged with full
    context and surfaced as a generic InternalError.
    """

    @functools.wraps(fn)
    def wrapper(*args, **kwargs) -> Result[T]:
        try:
            return Result.success(fn(*args, **kwargs))
        except CoreError as exc:
            return Result.failure(exc)
        except Exception:
            logger.exception("unhandled error in %s", fn.__qualname__)
            return Result.failure(InternalError())

    return wrapper
