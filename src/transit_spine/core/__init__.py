"""transit-spine core -- domain-agnostic primitives.

Architecture::

    errors.py          Structured error hierarchy (TransitSpineError, RunFailedError)
    logging.py         structlog configuration + context binding
    hashing.py         Deterministic content fingerprints
    keys.py            IdentityKey + table-safe key encoding
    run_id.py          Run id generation / validation
    config/            Pydantic settings (TRANSIT_SPINE_* env vars)
"""

from .errors import (
    ConfigError,
    ErrorCategory,
    ErrorContext,
    InvalidTransitionError,
    KindMismatchError,
    PreconditionError,
    RunCancelledError,
    RunFailedError,
    StorageError,
    TransitSpineError,
    ValidationError,
)
from .hashing import compute_hash, fingerprint
from .keys import IdentityKey, string_to_table_key
from .logging import LogContext, configure_logging, get_logger
from .run_id import generate_run_id, generate_test_run_id, validate_run_id

__all__ = [
    "ConfigError",
    "ErrorCategory",
    "ErrorContext",
    "IdentityKey",
    "InvalidTransitionError",
    "KindMismatchError",
    "LogContext",
    "PreconditionError",
    "RunCancelledError",
    "RunFailedError",
    "StorageError",
    "TransitSpineError",
    "ValidationError",
    "compute_hash",
    "configure_logging",
    "fingerprint",
    "generate_run_id",
    "generate_test_run_id",
    "get_logger",
    "string_to_table_key",
    "validate_run_id",
]
