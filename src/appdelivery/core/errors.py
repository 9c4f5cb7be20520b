"""
Structured error types for the application-delivery core.

Every error raised by the assembler, the workflow engine or the object store
carries enough metadata for the reconciler to decide what to do next without
string-matching messages:

- **Category:** what kind of failure (conflict, validation, capability, ...)
- **Retryable:** whether the next reconciliation pass may succeed unchanged
- **Retry-after:** optional hint, in seconds, for the requeue delay
- **Context:** application / revision / component / step metadata
- **Cause:** chained underlying exception

Manifesto:
    A reconciliation loop is level-triggered: every failure is either
    "try again later" or "needs a new input". The error type must say which.

    - **Transient errors** (write conflicts, external object not created yet)
      are retried on the next pass and never become a terminal failure.
    - **Malformed input** (annotation conflicts, foreign-owned objects) halts
      assembly of one component, never the whole revision.
    - **Unknown capability** is explicit: a kind the controller cannot
      prepare is an error, never a silent no-op.

Architecture:
    ::

        DeliveryError  (category, retryable, retry_after, context, cause)
          ├── TransientError          retryable=True
          │     ├── ConflictError           optimistic-concurrency precondition failed
          │     ├── WorkloadNotReadyError   externally managed object not yet created
          │     └── BundleNotReadyError     referenced bundle object not yet created
          ├── NotFoundError           object absent from the store
          ├── AlreadyExistsError      create of an existing object
          ├── MalformedInputError     VALIDATION, never retryable
          │     ├── AnnotationConflictError
          │     ├── ForeignObjectError
          │     ├── InvalidBundleError
          │     └── BadRevisionNameError
          ├── UnknownCapabilityError  CAPABILITY
          │     └── UnknownWorkloadKindError
          ├── ConfigError
          ├── AssemblyError           aggregates per-component errors
          └── WorkflowError

Examples:
    >>> err = ConflictError("resourceVersion mismatch")
    >>> err.retryable
    True
    >>> err.with_context(application="test-assemble").context.application
    'test-assemble'

Tags:
    error-handling, exception-hierarchy, retry-logic, reconciliation
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and requeue decisions."""

    # Infrastructure errors (usually transient)
    CONFLICT = "CONFLICT"          # Optimistic-concurrency precondition failed
    STORE = "STORE"                # Object store read/write failure
    NOT_READY = "NOT_READY"        # External collaborator has not produced the object yet

    # Input errors (never retryable)
    VALIDATION = "VALIDATION"      # Malformed template, bundle or annotation
    CAPABILITY = "CAPABILITY"      # Operation requested on an unsupported kind
    CONFIG = "CONFIG"              # Missing/invalid controller settings

    # Application errors
    ASSEMBLY = "ASSEMBLY"          # One or more components failed to assemble
    WORKFLOW = "WORKFLOW"          # Workflow engine failure

    # Internal errors
    INTERNAL = "INTERNAL"          # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only fields that are set end up in ``to_dict()``; anything that does not
    fit a typed field goes into ``metadata``.
    """

    application: str | None = None
    revision: str | None = None
    component: str | None = None
    step: str | None = None
    step_index: int | None = None
    kind: str | None = None
    name: str | None = None
    namespace: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["application", "revision", "component", "step", "step_index",
                    "kind", "name", "namespace"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class DeliveryError(Exception):
    """
    Base exception for all application-delivery errors.

    Subclasses set ``default_category`` and ``default_retryable`` so callers
    can raise them with just a message.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: float | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> DeliveryError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ForeignObjectError("owned by someone else").with_context(
                component="test-comp", name="web-nginx"
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/status reporting."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TRANSIENT ERRORS (Retryable)
# =============================================================================


class TransientError(DeliveryError):
    """Temporary error; the next reconciliation pass may succeed."""

    default_category = ErrorCategory.STORE
    default_retryable = True


class ConflictError(TransientError):
    """Write rejected because the object changed since it was last read."""

    default_category = ErrorCategory.CONFLICT


class WorkloadNotReadyError(TransientError):
    """An externally managed workload has not been created yet."""

    default_category = ErrorCategory.NOT_READY


class BundleNotReadyError(TransientError):
    """The object a revision's ``bundleRef`` names has not been created yet."""

    default_category = ErrorCategory.NOT_READY


# =============================================================================
# STORE ERRORS
# =============================================================================


class NotFoundError(DeliveryError):
    """Object does not exist in the store."""

    default_category = ErrorCategory.STORE
    default_retryable = False

    def __init__(self, kind: str, namespace: str | None, name: str, message: str | None = None):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        where = f"{namespace}/{name}" if namespace else name
        super().__init__(message or f"{kind} {where} not found")


class AlreadyExistsError(DeliveryError):
    """Create rejected because the object already exists."""

    default_category = ErrorCategory.CONFLICT
    default_retryable = True


# =============================================================================
# MALFORMED INPUT ERRORS (Never retryable)
# =============================================================================


class MalformedInputError(DeliveryError):
    """
    Input that cannot be assembled as-is.

    Never retryable - a new revision is required.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False


class AnnotationConflictError(MalformedInputError):
    """A template already uses a reserved annotation key with another value."""

    def __init__(self, key: str, existing: str, wanted: str):
        self.key = key
        self.existing = existing
        self.wanted = wanted
        super().__init__(
            f"annotation {key!r} is reserved: template value {existing!r} conflicts with {wanted!r}"
        )


class ForeignObjectError(MalformedInputError):
    """A name-matched object exists but is not managed by the expected owner."""

    pass


class InvalidBundleError(MalformedInputError):
    """The revision bundle cannot be decoded into component manifests."""

    pass


class BadRevisionNameError(MalformedInputError):
    """A revision name does not follow the ``<name>-v<number>`` convention."""

    def __init__(self, revision_name: str):
        self.revision_name = revision_name
        super().__init__(f"bad revision name {revision_name!r}")


# =============================================================================
# CAPABILITY ERRORS
# =============================================================================


class UnknownCapabilityError(DeliveryError):
    """An operation was requested for a resource the controller does not know."""

    default_category = ErrorCategory.CAPABILITY
    default_retryable = False


class UnknownWorkloadKindError(UnknownCapabilityError):
    """Pre-rollout preparation requested for an unrecognized workload kind."""

    def __init__(self, name: str, gvk: str):
        self.name = name
        self.gvk = gvk
        super().__init__(f"we do not know how to prepare `{name}` as it has an unknown type {gvk}")


# =============================================================================
# CONFIGURATION / APPLICATION ERRORS
# =============================================================================


class ConfigError(DeliveryError):
    """Controller configuration is missing or invalid."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class AssemblyError(DeliveryError):
    """One or more components of a revision failed to assemble."""

    default_category = ErrorCategory.ASSEMBLY

    def __init__(self, errors: dict[str, Exception], message: str | None = None):
        self.errors = dict(errors)
        names = ", ".join(sorted(self.errors))
        super().__init__(
            message or f"cannot assemble components: {names}",
            retryable=bool(self.errors) and all(is_retryable(e) for e in self.errors.values()),
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["components"] = {name: str(err) for name, err in sorted(self.errors.items())}
        return result


class WorkflowError(DeliveryError):
    """Workflow engine failure (bad step definition, unrenderable target)."""

    default_category = ErrorCategory.WORKFLOW
    default_retryable = False


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, DeliveryError):
        return error.retryable
    return isinstance(error, (ConnectionError, TimeoutError))


def get_retry_after(error: Exception) -> float | None:
    """Get retry delay from error, if specified."""
    if isinstance(error, DeliveryError):
        return error.retry_after
    return None


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "DeliveryError",
    # Transient
    "TransientError",
    "ConflictError",
    "WorkloadNotReadyError",
    "BundleNotReadyError",
    # Store
    "NotFoundError",
    "AlreadyExistsError",
    # Malformed input
    "MalformedInputError",
    "AnnotationConflictError",
    "ForeignObjectError",
    "InvalidBundleError",
    "BadRevisionNameError",
    # Capability
    "UnknownCapabilityError",
    "UnknownWorkloadKindError",
    # Config / application
    "ConfigError",
    "AssemblyError",
    "WorkflowError",
    # Utilities
    "is_retryable",
    "get_retry_after",
]
