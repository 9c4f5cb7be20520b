"""Appdelivery Core -- shared primitives for the assembler and the workflow engine.

Architecture::

    Layer 1 -- Types & Errors
        errors.py      Structured error hierarchy (DeliveryError, TransientError)
        result.py      Result[T] envelope (Ok / Err / partition_keyed)

    Layer 2 -- Platform objects
        labels.py      Reserved label / annotation keys
        naming.py      Deterministic hashing and naming
        objects.py     Plain-dict object helpers, TypedReference
        store.py       ObjectStore protocol + InMemoryObjectStore

    Layer 3 -- Ambient
        logging.py     structlog configuration
        settings.py    ControllerSettings (pydantic-settings)
"""

from appdelivery.core.errors import (
    AnnotationConflictError,
    AssemblyError,
    BundleNotReadyError,
    ConflictError,
    DeliveryError,
    ErrorCategory,
    ForeignObjectError,
    InvalidBundleError,
    MalformedInputError,
    NotFoundError,
    TransientError,
    UnknownCapabilityError,
    UnknownWorkloadKindError,
    WorkloadNotReadyError,
    is_retryable,
)
from appdelivery.core.objects import TypedReference
from appdelivery.core.result import Err, Ok, Result, partition_keyed, try_result
from appdelivery.core.settings import ControllerSettings, get_settings
from appdelivery.core.store import InMemoryObjectStore, ObjectStore

__all__ = [
    "AnnotationConflictError",
    "AssemblyError",
    "BundleNotReadyError",
    "ConflictError",
    "DeliveryError",
    "ErrorCategory",
    "ForeignObjectError",
    "InvalidBundleError",
    "MalformedInputError",
    "NotFoundError",
    "TransientError",
    "UnknownCapabilityError",
    "UnknownWorkloadKindError",
    "WorkloadNotReadyError",
    "is_retryable",
    "TypedReference",
    "Err",
    "Ok",
    "Result",
    "partition_keyed",
    "try_result",
    "ControllerSettings",
    "get_settings",
    "InMemoryObjectStore",
    "ObjectStore",
]
