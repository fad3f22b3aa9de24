# core_commerce/constants.py
"""
Constants for database and user operations
"""

# Connection constants
DEFAULT_PORT = 5432
DEFAULT_MAX_CONNECTIONS = 10
DEFAULT_CONNECT_TIMEOUT = 30
DEFAULT_IDLE_TIMEOUT = 0
DEFAULT_CLOSE_TIMEOUT = 30

# Retry constants (wait is 2 ** attempt seconds)
DEFAULT_CONNECT_RETRIES = 3
RETRY_BACKOFF_BASE = 2

# Probe queries
CONNECTION_PROBE_QUERY = "SELECT 1 AS test, NOW() AS timestamp"
HEALTH_CHECK_QUERY = "SELECT 1"

# Batch operations
DEFAULT_BULK_INSERT_BATCH_SIZE = 1000
DEFAULT_BULK_UPDATE_BATCH_SIZE = 500

# Slow query threshold in seconds
SLOW_QUERY_THRESHOLD = 1.0

# Transaction isolation levels
READ_COMMITTED = "READ COMMITTED"
REPEATABLE_READ = "REPEATABLE READ"
SERIALIZABLE = "SERIALIZABLE"
VALID_ISOLATION_LEVELS = (READ_COMMITTED, REPEATABLE_READ, SERIALIZABLE)

# PostgreSQL SQLSTATE codes
UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"
INTEGRITY_CONSTRAINT_CLASS = "23"
DEADLOCK_DETECTED = "40P01"

# Migrations
MIGRATIONS_TABLE = "migrations"
DEFAULT_MIGRATIONS_DIR = "./migrations"
MIGRATION_UP_MARKER = "-- UP"
MIGRATION_DOWN_MARKER = "-- DOWN"
MIGRATION_FILE_SUFFIX = ".sql"

# Seeds
DEFAULT_SEEDS_DIR = "./seeds"
PRODUCTION_ENV = "production"

# Identifier pattern for tables, columns and channels
IDENTIFIER_PATTERN = r"^[A-Za-z_][A-Za-z0-9_]*$"
