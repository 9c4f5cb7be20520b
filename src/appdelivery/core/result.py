"""
Result envelope for per-key partial-failure aggregation.

The assembler processes every component of a revision independently: one
component failing its option chain must not stop its siblings. Instead of
raising on the first error, each component produces a ``Result`` and the
whole revision produces a ``dict[str, Result]``.

Manifesto:
    - **Error as a value:** a failed component is data, not control flow
    - **Partial success:** callers see both the assembled and the failed keys
    - **Explicit unwrap:** ``unwrap()`` on ``Err`` re-raises the original error

Architecture:
    ::

        {"web": Ok(AssembledComponent), "db": Err(WorkloadNotReadyError)}
                              │
                              ▼  partition_keyed()
        values: {"web": AssembledComponent}
        errors: {"db": WorkloadNotReadyError}

Usage:
    from appdelivery.core.result import Ok, Err, try_result

    result = try_result(lambda: assemble_component(entry))
    match result:
        case Ok(component):
            ...
        case Err(error):
            ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from appdelivery.core.errors import DeliveryError

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful result containing a value."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        """Get the value. Safe for Ok."""
        return self.value

    def unwrap_or(self, default: T) -> T:
        """Get value or default (always returns value for Ok)."""
        return self.value

    def map(self, f: Callable[[T], U]) -> Result[U]:
        """Transform the value if Ok."""
        return Ok(f(self.value))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"ok": True, "value": self.value}

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[T]):
    """Failed result containing an error."""

    error: Exception

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Raise the error. Use only when you're sure it's Ok."""
        raise self.error

    def unwrap_or(self, default: T) -> T:
        """Get default since this is Err."""
        return default

    def map(self, f: Callable[[T], U]) -> Result[U]:
        """No-op for Err."""
        return Err(self.error)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        if isinstance(self.error, DeliveryError):
            return {"ok": False, "error": self.error.to_dict()}
        return {
            "ok": False,
            "error": {
                "error_type": type(self.error).__name__,
                "message": str(self.error),
            },
        }

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result = Ok[T] | Err[T]


def try_result(f: Callable[[], T]) -> Result[T]:
    """
    Execute a function and wrap its outcome in a Result.

    Only ``Exception`` subclasses are captured; ``KeyboardInterrupt`` and
    friends still propagate.
    """
    try:
        return Ok(f())
    except Exception as e:
        return Err(e)


def partition_results(results: list[Result[T]]) -> tuple[list[T], list[Exception]]:
    """Partition results into successes and failures, preserving order."""
    values = []
    errors = []
    for result in results:
        match result:
            case Ok(value):
                values.append(value)
            case Err(error):
                errors.append(error)
    return values, errors


def partition_keyed(results: dict[str, Result[T]]) -> tuple[dict[str, T], dict[str, Exception]]:
    """Keyed variant of :func:`partition_results`; key order is preserved."""
    values: dict[str, T] = {}
    errors: dict[str, Exception] = {}
    for key, result in results.items():
        match result:
            case Ok(value):
                values[key] = value
            case Err(error):
                errors[key] = error
    return values, errors


__all__ = [
    "Ok",
    "Err",
    "Result",
    "try_result",
    "partition_results",
    "partition_keyed",
]
