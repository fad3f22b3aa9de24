# core_commerce/exceptions.py
"""
Custom exceptions for database operations
"""
import logging
from typing import Any, Optional

from asyncpg import PostgresError

from .constants import (
    UNIQUE_VIOLATION, FOREIGN_KEY_VIOLATION, INTEGRITY_CONSTRAINT_CLASS,
    DEADLOCK_DETECTED
)

logger = logging.getLogger(__name__)


class DatabaseError(Exception):
    """Base exception for all database errors"""

    default_code = "DATABASE_ERROR"

    def __init__(self, message: str, original_error: Exception = None, code: str = None):
        super().__init__(message)
        self.original_error = original_error
        self.message = message
        self.code = code or self.default_code

    def __str__(self):
        if self.original_error:
            return f"{self.message} (Original: {self.original_error})"
        return self.message


class ConnectionError(DatabaseError):
    """Raised when a connection cannot be established"""

    default_code = "CONNECTION_ERROR"

    def __init__(self, message: str, original_error: Exception = None, attempts: int = 0):
        super().__init__(message, original_error)
        self.attempts = attempts


class NotConnectedError(ConnectionError):
    """Raised when an operation runs before a successful connect()"""

    default_code = "NOT_CONNECTED"

    def __init__(self, message: str = "Database not connected. Call connect() first."):
        super().__init__(message)


class QueryError(DatabaseError):
    """Query execution error carrying the driver diagnostics"""

    default_code = "QUERY_ERROR"

    def __init__(
        self,
        message: str,
        original_error: Exception = None,
        code: str = None,
        detail: Optional[str] = None,
        hint: Optional[str] = None,
        position: Optional[Any] = None,
        query: Optional[str] = None,
    ):
        super().__init__(message, original_error, code)
        self.detail = detail
        self.hint = hint
        self.position = position
        self.query = query


class IntegrityError(QueryError):
    """Base class for integrity constraint violations"""


class DuplicateEntryError(IntegrityError):
    """Unique key violation"""


class ConstraintViolationError(IntegrityError):
    """Check / not-null / exclusion constraint violation"""


class ForeignKeyViolationError(ConstraintViolationError):
    """Foreign key violation"""


class DeadlockError(QueryError):
    """Deadlock detected by the server"""


class TransactionError(DatabaseError):
    """Exception raised for transaction-related errors"""

    default_code = "TRANSACTION_ERROR"


class MigrationError(DatabaseError):
    """Exception raised when a migration cannot be applied or reverted"""

    default_code = "MIGRATION_ERROR"


class ValidationError(DatabaseError):
    """Exception raised for data validation errors, before any I/O"""

    default_code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str = None):
        if field:
            message = f"Validation error for field '{field}': {message}"
        super().__init__(message)
        self.field = field


class ResourceNotFoundError(DatabaseError):
    """Exception raised when a requested resource is not found"""

    default_code = "NOT_FOUND"

    def __init__(self, resource_type: str, resource_id: str = None, message: str = None):
        if message is None:
            if resource_id:
                message = f"{resource_type} with ID '{resource_id}' not found"
            else:
                message = f"{resource_type} not found"
        super().__init__(message)
        self.resource_type = resource_type
        self.resource_id = resource_id


class DatabaseOperationError(DatabaseError):
    """Exception raised for general database operation errors"""

    default_code = "OPERATION_FAILED"

    def __init__(self, operation: str, message: str, original_error: Exception = None):
        super().__init__(f"Operation '{operation}' failed: {message}", original_error)
        self.operation = operation


def is_database_error(error: Exception) -> bool:
    """Check if exception is a database-related error"""
    return isinstance(error, DatabaseError)


def _driver_error(error: BaseException) -> Optional[BaseException]:
    """
    Find the server-side error behind a SQLAlchemy/adapter wrapper

    Walks ``orig`` and the ``__cause__`` chain. asyncpg errors win because
    they carry detail/hint/position; otherwise anything exposing a sqlstate.
    """
    seen = set()
    fallback = None
    pending = [error]
    while pending:
        current = pending.pop(0)
        if current is None or id(current) in seen:
            continue
        seen.add(id(current))
        if isinstance(current, PostgresError):
            return current
        if fallback is None and getattr(current, "sqlstate", None):
            fallback = current
        pending.append(getattr(current, "orig", None))
        pending.append(current.__cause__)
    return fallback


def _error_class_for(sqlstate: Optional[str], message: str):
    if sqlstate:
        if sqlstate == UNIQUE_VIOLATION:
            return DuplicateEntryError
        if sqlstate == FOREIGN_KEY_VIOLATION:
            return ForeignKeyViolationError
        if sqlstate.startswith(INTEGRITY_CONSTRAINT_CLASS):
            return ConstraintViolationError
        if sqlstate == DEADLOCK_DETECTED:
            return DeadlockError
        return QueryError

    error_lower = message.lower()
    if "duplicate key" in error_lower or "unique constraint" in error_lower:
        return DuplicateEntryError
    if "foreign key" in error_lower:
        return ForeignKeyViolationError
    if "violates" in error_lower:
        return ConstraintViolationError
    if "deadlock" in error_lower:
        return DeadlockError
    return QueryError


def normalize_database_error(error: Exception, context: str = "Database operation") -> DatabaseError:
    """
    Convert any driver error into the uniform error shape

    Args:
        error: Original exception
        context: Operation that failed, used as message prefix

    Returns:
        The error itself when already a DatabaseError, otherwise the
        matching QueryError subclass with code, diagnostics and cause
        (raise it without ``from``; the cause is already attached)
    """
    if isinstance(error, DatabaseError):
        return error

    driver = _driver_error(error)
    query = getattr(error, "statement", None)

    if driver is not None:
        sqlstate = getattr(driver, "sqlstate", None)
        code = sqlstate or "POSTGRES_ERROR"
        driver_message = getattr(driver, "message", None) or str(driver)
        detail = getattr(driver, "detail", None)
        hint = getattr(driver, "hint", None)
        position = getattr(driver, "position", None)
        query = getattr(driver, "query", None) or query

        message = f"{context} error: {driver_message}"
        if detail:
            message += f"\nDetails: {detail}"
        if hint:
            message += f"\nHint: {hint}"
        if position:
            message += f"\nPosition: {position}"
        if query:
            message += f"\nQuery: {query}"
    else:
        sqlstate = None
        code = type(error).__name__ or "ERROR"
        detail = hint = position = None
        message = f"{context}: {error}"

    exc_class = _error_class_for(sqlstate, str(error))
    logger.error(f"[Database] {message}")
    normalized = exc_class(
        message,
        original_error=error,
        code=code,
        detail=detail,
        hint=hint,
        position=position,
        query=query,
    )
    normalized.__cause__ = error
    return normalized
