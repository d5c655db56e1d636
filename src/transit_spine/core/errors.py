"""
Structured error types for transit-spine.

Manifesto:
    A sync run fans out over many regions and agencies. When something goes
    wrong an operator needs to know *which* partition failed, *what kind* of
    failure it was, and whether re-running is safe. Errors therefore carry:

    - **Category:** validation, storage, config, publish, orchestration
    - **Retryable:** whether the same call may succeed later
    - **Context:** run_id, record_type, region_id, agency_id, table
    - **Cause:** the chained underlying exception

Architecture:
    ::

        TransitSpineError (category, retryable, context, cause)
        ├── ValidationError            (VALIDATION, never retryable)
        │   ├── PreconditionError      malformed / duplicate identity key,
        │   │                          illegal input lifecycle state
        │   └── KindMismatchError      entity kind != comparator kind
        ├── StorageError               (STORAGE)
        │   ├── DuplicateRowError
        │   └── TableNotFoundError
        ├── ConfigError                (CONFIG)
        ├── PublishError               (PUBLISH, retryable)
        └── OrchestrationError         (ORCHESTRATION)
            ├── RunFailedError         aggregate of *all* partition failures
            └── RunCancelledError

    InvalidTransitionError(ValueError) lives beside the lifecycle state
    machine's callers and is raised for illegal state moves.

Guardrails:
    ❌ DON'T: Catch PreconditionError inside the diff engine
    ✅ DO: Let it surface; it is a caller bug, not a transient failure

    ❌ DON'T: Stop at the first partition failure
    ✅ DO: Collect every failure into RunFailedError

Tags:
    error-handling, exception-hierarchy, transit-spine
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and reporting."""

    VALIDATION = "VALIDATION"
    STORAGE = "STORAGE"
    CONFIG = "CONFIG"
    PUBLISH = "PUBLISH"
    ORCHESTRATION = "ORCHESTRATION"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured context for errors.

    Attributes:
        run_id: Run identifier
        record_type: Entity kind being processed (Route, Stop, ...)
        region_id: Region of the failing partition
        agency_id: Agency of the failing partition (routes only)
        table: Storage table involved
        metadata: Additional key-value pairs
    """

    run_id: str | None = None
    record_type: str | None = None
    region_id: str | None = None
    agency_id: str | None = None
    table: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["run_id", "record_type", "region_id", "agency_id", "table"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class TransitSpineError(Exception):
    """
    Base exception for all transit-spine errors.

    Subclasses set ``default_category`` and ``default_retryable`` to give
    sensible defaults for their domain.

    Examples:
        >>> error = TransitSpineError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(run_id="20250101", region_id="1").context.region_id
        '1'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> TransitSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise StorageError("insert failed").with_context(table="Diff2025")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# VALIDATION ERRORS (never retryable)
# =============================================================================


class ValidationError(TransitSpineError):
    """
    Data validation error.

    Never retryable - the input must be fixed.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


class PreconditionError(ValidationError):
    """Input violates a precondition of the diff engine (a caller bug)."""


class KindMismatchError(ValidationError):
    """Entities of one kind were compared using another kind's comparator."""


class InvalidTransitionError(ValueError):
    """Raised when an illegal lifecycle state transition is attempted.

    Transition validation is deliberately strict. If a legitimate
    transition is blocked, add it to ``ROW_STATE_TRANSITIONS``.
    """

    def __init__(self, current: str, target: str, enum_name: str = "RowState") -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid {enum_name} transition: {current} → {target}")


# =============================================================================
# STORAGE / CONFIG / PUBLISH
# =============================================================================


class StorageError(TransitSpineError):
    """Keyed store operation failed."""

    default_category = ErrorCategory.STORAGE
    default_retryable = False


class DuplicateRowError(StorageError):
    """Insert collided with an existing (partition key, row key)."""


class TableNotFoundError(StorageError):
    """Query against a table that was never created."""


class ConfigError(TransitSpineError):
    """Invalid configuration value or run id."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class PublishError(TransitSpineError):
    """The discussion platform rejected a topic operation."""

    default_category = ErrorCategory.PUBLISH
    default_retryable = True


# =============================================================================
# ORCHESTRATION
# =============================================================================


class OrchestrationError(TransitSpineError):
    """Run-level coordination error."""

    default_category = ErrorCategory.ORCHESTRATION
    default_retryable = False


class RunFailedError(OrchestrationError):
    """
    One or more partitions of a run failed.

    Carries every failure (not just the first) so operators can see which
    regions and agencies are affected. Re-running the same run id is safe:
    re-diffing against the same published snapshot reproduces any deltas
    that were not written.
    """

    default_retryable = True

    def __init__(self, run_id: str, failures: list[dict[str, Any]], **kwargs: Any):
        self.run_id = run_id
        self.failures = list(failures)
        labels = ", ".join(
            f"{f.get('record_type')}:{f.get('partition')}" for f in self.failures
        )
        super().__init__(
            f"Run {run_id} failed in {len(self.failures)} partition(s): {labels}",
            context=ErrorContext(run_id=run_id),
            **kwargs,
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["failures"] = self.failures
        return result


class RunCancelledError(OrchestrationError):
    """The run was cancelled before every partition started."""

    def __init__(self, run_id: str, cancelled: int, **kwargs: Any):
        self.run_id = run_id
        self.cancelled = cancelled
        super().__init__(
            f"Run {run_id} cancelled with {cancelled} partition(s) not started",
            context=ErrorContext(run_id=run_id),
            **kwargs,
        )


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "TransitSpineError",
    "ValidationError",
    "PreconditionError",
    "KindMismatchError",
    "InvalidTransitionError",
    "StorageError",
    "DuplicateRowError",
    "TableNotFoundError",
    "ConfigError",
    "PublishError",
    "OrchestrationError",
    "RunFailedError",
    "RunCancelledError",
]
