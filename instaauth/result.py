"""
Operation Results
=================
Every public AuthEngine operation returns an AuthResult instead of
raising. Callers inspect `outcome` (or `succeeded`); `unwrap()` re-raises
the attached error for code that prefers exceptions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

from .exceptions import InstagramError

T = TypeVar("T")


class LoginOutcome(str, Enum):
    SUCCESS = "success"
    TWO_FACTOR_REQUIRED = "two_factor_required"
    CHALLENGE_REQUIRED = "challenge_required"
    BAD_PASSWORD = "bad_password"
    INVALID_USER = "invalid_user"
    RATE_LIMITED = "rate_limited"
    EXCEPTION = "exception"


class TwoFactorOutcome(str, Enum):
    SUCCESS = "success"
    INVALID_CODE = "invalid_code"
    CODE_EXPIRED = "code_expired"
    EXCEPTION = "exception"


class StepOutcome(str, Enum):
    """Outcome of challenge steps, logout and other single-call operations."""
    SUCCESS = "success"
    REJECTED = "rejected"
    EXCEPTION = "exception"


@dataclass
class AuthResult(Generic[T]):
    """
    Discriminated result of an auth operation.

    Attributes:
        succeeded: True when the operation reached its success outcome
        outcome: Outcome code (LoginOutcome, TwoFactorOutcome or StepOutcome)
        value: Success payload (or the resulting value, e.g. logout → bool)
        message: Human-readable failure reason
        error: Exception describing the failure (ValidationError, SequenceError, ...)
        raw: Parsed response body, when there was one
    """

    succeeded: bool
    outcome: Enum
    value: Optional[T] = None
    message: str = ""
    error: Optional[Exception] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, outcome: Enum, value: Optional[T] = None, raw: Optional[dict] = None) -> "AuthResult[T]":
        return cls(succeeded=True, outcome=outcome, value=value, raw=raw or {})

    @classmethod
    def fail(
        cls,
        outcome: Enum,
        message: str = "",
        error: Optional[Exception] = None,
        value: Optional[T] = None,
        raw: Optional[dict] = None,
    ) -> "AuthResult[T]":
        if not message and error is not None:
            message = str(error)
        return cls(
            succeeded=False,
            outcome=outcome,
            value=value,
            message=message,
            error=error,
            raw=raw or {},
        )

    def unwrap(self) -> Optional[T]:
        """Return value, or raise the failure."""
        if self.succeeded:
            return self.value
        if self.error is not None:
            raise self.error
        raise InstagramError(self.message or f"Operation failed: {self.outcome.value}", response=self.raw)

    def __bool__(self) -> bool:
        return self.succeeded

    def __repr__(self) -> str:
        parts = [f"AuthResult({self.outcome.value}"]
        if self.message:
            parts.append(f", message={self.message!r}")
        if self.error is not None:
            parts.append(f", error={type(self.error).__name__}")
        parts.append(")")
        return "".join(parts)
