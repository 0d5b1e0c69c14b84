"""
Core utilities and configuration for the airport synchronization backend.

Modules:
    config: Application configuration and environment variable management
    database: Live store engine and session management
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import settings
    from core.database import async_session_maker
    from core.exceptions import SnapshotPreconditionError
    from core.logging import setup_logging
"""

__all__ = [
    "settings",
    "async_session_maker",
    "setup_logging",
    # Exceptions
    "SyncException",
    "SnapshotError",
    "SnapshotNotFoundError",
    "SnapshotPreconditionError",
    "RowError",
    "RowValidationError",
    "MissingReferenceError",
    "PersistenceError",
    "BulkWriteError",
    "StoreUnavailableError",
    "UnknownImportTypeError",
    "RetryableError",
    "NonRetryableError",
]
