# core_commerce/__init__.py
"""
Core e-commerce persistence module

Async PostgreSQL access (connection lifecycle, queries, transactions, bulk
operations, LISTEN/NOTIFY, migrations) and the user repository/service
built on top of it.
"""

# Re-export main components for easy access
from .async_postgres import AsyncPostgresDB
from .connection import ConnectionManager
from .config import ConfigLoader, DatabaseConfig, DatabaseSettings, get_database_config
from .exceptions import *
from .migrations import MigrationRunner, load_migration_files
from .types import *
from .utils import build_set_clause, build_where_clause, rows_to_dicts, safe_identifier


# Factory function for creating database clients
def create_database_client(config: DatabaseConfig = None, **kwargs) -> AsyncPostgresDB:
    """
    Factory function to create a database client

    Args:
        config: Pre-configured DatabaseConfig object
        **kwargs: host/db_name/username and other DatabaseConfig fields,
            used when no config is given (environment otherwise)

    Returns:
        AsyncPostgresDB instance, not yet connected

    Examples:
        db = create_database_client()
        await db.connect()

        db = create_database_client(host="localhost", db_name="shop", username="shop")
    """
    return AsyncPostgresDB(config or get_database_config(**kwargs))


__all__ = [
    # Main classes
    "AsyncPostgresDB",
    "ConnectionManager",
    "MigrationRunner",
    "DatabaseConfig",
    "DatabaseSettings",
    "ConfigLoader",
    "get_database_config",
    "create_database_client",
    "load_migration_files",

    # Exceptions
    "DatabaseError",
    "ConnectionError",
    "NotConnectedError",
    "QueryError",
    "IntegrityError",
    "DuplicateEntryError",
    "ConstraintViolationError",
    "ForeignKeyViolationError",
    "DeadlockError",
    "TransactionError",
    "MigrationError",
    "ValidationError",
    "ResourceNotFoundError",
    "DatabaseOperationError",
    "normalize_database_error",

    # Types
    "QueryResult",
    "HealthCheckResult",
    "BulkUpdate",
    "MigrationFile",
    "DatabaseStats",
    "Subscription",

    # Utilities
    "rows_to_dicts",
    "build_set_clause",
    "build_where_clause",
    "safe_identifier",
]
