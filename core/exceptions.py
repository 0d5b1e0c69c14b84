"""
Custom exceptions for the airport synchronization engine with structured error context.

Exception Hierarchy:
    SyncException (base)
    ├── SnapshotError
    │   ├── SnapshotNotFoundError
    │   └── SnapshotPreconditionError
    ├── RowError
    │   ├── RowValidationError
    │   └── MissingReferenceError
    ├── PersistenceError
    │   ├── BulkWriteError
    │   └── StoreUnavailableError
    ├── UnknownImportTypeError
    └── RetryableError / NonRetryableError (mixins)

Row errors are recovered where they occur (row skipped, counted, warned).
Snapshot and import type errors are fatal for the job but never for the worker.
"""

from typing import Optional, Dict, Any
from datetime import datetime


class SyncException(Exception):
    """
    Base exception for all synchronization errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (job id, file, category, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(SyncException):
    """
    Mixin for errors that should trigger a backoff and retry at the worker loop level.

    Use this for transient errors like:
    - Live store unavailable
    - Temporary I/O failures
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        max_retries: int = 3,
        retry_delay: float = 30.0
    ):
        super().__init__(message, context, original_exception)
        self.max_retries = max_retries
        self.retry_delay = retry_delay


class NonRetryableError(SyncException):
    """
    Mixin for errors that should NOT trigger retry logic.

    Retrying a job with a broken snapshot or an unknown type yields the same failure.
    """
    pass


# ============================================================================
# Snapshot Errors
# ============================================================================

class SnapshotError(SyncException):
    """Base exception for snapshot access failures."""
    pass


class SnapshotNotFoundError(NonRetryableError, SnapshotError):
    """
    The uploaded snapshot file does not exist.

    Context should include:
        - file_path: Path of the missing snapshot
    """
    pass


class SnapshotPreconditionError(NonRetryableError, SnapshotError):
    """
    A required snapshot table is missing, uncountable or empty.

    Context should include:
        - file_path: Path to the snapshot
        - table_name: Table that failed the check
    """
    pass


# ============================================================================
# Row Errors
# ============================================================================

class RowError(SyncException):
    """Base exception for row level defects; never fatal for a job."""
    pass


class RowValidationError(RowError):
    """
    A snapshot row is malformed (for example an airport ident that is too long).

    Context should include:
        - category: Progress category of the row
        - key: Identifier of the offending row
    """
    pass


class MissingReferenceError(RowError):
    """
    A child row references a parent that does not exist in the live store.

    Context should include:
        - category: Progress category of the row
        - key: Identifier of the child row
        - parent_key: Identifier of the missing parent
    """
    pass


# ============================================================================
# Persistence Errors
# ============================================================================

class PersistenceError(SyncException):
    """Base exception for live store write failures."""
    pass


class BulkWriteError(PersistenceError):
    """
    A batched insert, update or delete failed.

    Context should include:
        - operation: INSERT, UPDATE or DELETE
        - table_name: Name of the table
        - rows: Number of rows in the failing batch
    """
    pass


class StoreUnavailableError(RetryableError, PersistenceError):
    """Live store connection errors that should be retried after a backoff."""
    pass


# ============================================================================
# Dispatch Errors
# ============================================================================

class UnknownImportTypeError(NonRetryableError):
    """The job type tag does not select any known pipeline."""
    pass
