"""Outcome of an outbound call (WhatsApp send, Telegram send) that callers branch on."""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    """``ok`` plus either the provider's response or an error message.

    ``error_code`` is one of ``not_configured``, ``network_error``,
    ``api_error`` for the messaging clients, ``unknown`` otherwise.
    """

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str, code: str = "unknown") -> "Result[T]":
        return cls(ok=False, error=error, error_code=code)

    def unwrap_or(self, default: T) -> T:
        """The response on success, ``default`` when delivery failed."""
        return self.value if self.ok else default
