# core_commerce/migrations.py
"""
SQL file migrations tracked in the migrations table

Files are named ``<version>_<name>.sql``; versions compare as strings, so
zero-padded prefixes (``001``, ``002``, ...) keep the intended order. Each
file holds the forward script, optionally preceded by ``-- UP``, and may hold
a ``-- DOWN`` section with the reverse script.
"""
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union, TYPE_CHECKING

from .constants import (
    DEFAULT_MIGRATIONS_DIR, MIGRATIONS_TABLE, MIGRATION_DOWN_MARKER,
    MIGRATION_FILE_SUFFIX, MIGRATION_UP_MARKER
)
from .exceptions import MigrationError, normalize_database_error
from .types import MigrationFile
from .utils import parse_migration_filename

if TYPE_CHECKING:
    from .async_postgres import AsyncPostgresDB

logger = logging.getLogger(__name__)


def _marker_line(marker: str) -> "re.Pattern":
    return re.compile(rf"^[ \t]*{re.escape(marker)}[ \t]*\r?$", re.MULTILINE)


UP_MARKER_LINE = _marker_line(MIGRATION_UP_MARKER)
DOWN_MARKER_LINE = _marker_line(MIGRATION_DOWN_MARKER)


def split_migration(content: str) -> Tuple[str, Optional[str]]:
    """
    Split file content into (up, down) scripts

    Markers count only on a line of their own, so comments such as
    ``-- DOWNGRADE note`` stay part of the script.
    """
    parts = DOWN_MARKER_LINE.split(content, maxsplit=1)
    up = UP_MARKER_LINE.sub("", parts[0], count=1).strip()
    down = parts[1].strip() if len(parts) > 1 else ""
    return up, down or None


def load_migration_files(migrations_dir: Union[str, Path]) -> List[MigrationFile]:
    """
    Load migrations from a directory, ordered by file name

    A missing or unreadable directory yields no migrations.
    """
    directory = Path(migrations_dir)
    try:
        paths = sorted(
            (path for path in directory.iterdir()
             if path.is_file() and path.name.endswith(MIGRATION_FILE_SUFFIX)),
            key=lambda path: path.name
        )
        migrations = []
        for path in paths:
            parsed = parse_migration_filename(path.name, MIGRATION_FILE_SUFFIX)
            if parsed is None:
                logger.warning(f"[Database] Skipping migration with invalid name: {path.name}")
                continue
            version, name = parsed
            up, down = split_migration(path.read_text(encoding="utf-8"))
            migrations.append(MigrationFile(version=version, name=name, up=up, down=down))
        return migrations
    except OSError as e:
        logger.warning(f"[Database] Could not load migration files from {migrations_dir}: {e}")
        return []


class MigrationRunner:
    """Apply and revert migrations, each run in a single transaction"""

    def __init__(self, db: "AsyncPostgresDB", migrations_dir: Union[str, Path] = DEFAULT_MIGRATIONS_DIR):
        self.db = db
        self.migrations_dir = migrations_dir

    async def ensure_table(self) -> None:
        await self.db.query(
            f"""
            CREATE TABLE IF NOT EXISTS {MIGRATIONS_TABLE} (
              version VARCHAR(255) PRIMARY KEY,
              name VARCHAR(255) NOT NULL,
              applied_at TIMESTAMP DEFAULT NOW()
            )
            """
        )

    async def applied_versions(self) -> List[str]:
        rows = await self.db.query(f"SELECT version FROM {MIGRATIONS_TABLE} ORDER BY version")
        return [row["version"] for row in rows]

    async def run_migrations(self, target: Optional[str] = None) -> List[str]:
        """
        Apply pending migrations up to ``target`` (inclusive)

        Every pending ``up`` script and its record are written in one
        transaction: either all of them are applied or none.

        Returns:
            Applied versions, ascending
        """
        try:
            await self.ensure_table()
            applied = set(await self.applied_versions())
            pending = [
                migration for migration in load_migration_files(self.migrations_dir)
                if migration.version not in applied
                and (target is None or migration.version <= target)
            ]

            if not pending:
                logger.info("[Database] No pending migrations")
                return []

            async with self.db.begin() as conn:
                for migration in pending:
                    logger.info(f"[Database] Applying migration: {migration.version} - {migration.name}")
                    if migration.up:
                        await self.db.execute_script(conn, migration.up)
                    await self.db.query(
                        f"INSERT INTO {MIGRATIONS_TABLE} (version, name) VALUES (:version, :name)",
                        {"version": migration.version, "name": migration.name},
                        conn=conn
                    )
                    logger.info(f"[Database] Applied migration: {migration.version}")

            logger.info(f"[Database] Applied {len(pending)} migrations")
            return [migration.version for migration in pending]
        except Exception as e:
            raise normalize_database_error(e, "Run migrations")

    async def rollback_migrations(self, target: Optional[str] = None) -> List[str]:
        """
        Revert applied migrations newer than ``target`` (all when None)

        Newest first, in one transaction. A migration without a ``down``
        script aborts the whole rollback.

        Returns:
            Reverted versions, descending
        """
        try:
            await self.ensure_table()
            applied = await self.db.query(
                f"SELECT version, name FROM {MIGRATIONS_TABLE} ORDER BY version DESC"
            )
            files = {migration.version: migration for migration in load_migration_files(self.migrations_dir)}
            to_rollback = [
                row for row in applied
                if target is None or row["version"] > target
            ]

            if not to_rollback:
                logger.info("[Database] No migrations to rollback")
                return []

            async with self.db.begin() as conn:
                for row in to_rollback:
                    version = row["version"]
                    migration = files.get(version)
                    if migration is None or not migration.down:
                        raise MigrationError(f"No rollback script for migration: {version}")

                    logger.info(f"[Database] Rolling back migration: {version} - {row['name']}")
                    await self.db.execute_script(conn, migration.down)
                    await self.db.query(
                        f"DELETE FROM {MIGRATIONS_TABLE} WHERE version = :version",
                        {"version": version},
                        conn=conn
                    )
                    logger.info(f"[Database] Rolled back migration: {version}")

            logger.info(f"[Database] Rolled back {len(to_rollback)} migrations")
            return [row["version"] for row in to_rollback]
        except Exception as e:
            raise normalize_database_error(e, "Rollback migrations")

    async def status(self) -> List[Dict[str, Any]]:
        """Every known migration with its applied flag"""
        await self.ensure_table()
        applied = set(await self.applied_versions())
        return [
            {"version": m.version, "name": m.name, "applied": m.version in applied}
            for m in load_migration_files(self.migrations_dir)
        ]
