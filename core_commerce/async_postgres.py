# core_commerce/async_postgres.py
"""
Async PostgreSQL client for e-commerce services
"""
import asyncio
import inspect
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from sqlalchemy import insert, literal_column, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncConnection

from .config import DatabaseConfig
from .connection import ConnectionManager, driver_connection
from .constants import (
    DEFAULT_BULK_INSERT_BATCH_SIZE, DEFAULT_BULK_UPDATE_BATCH_SIZE,
    DEFAULT_MIGRATIONS_DIR, DEFAULT_SEEDS_DIR, PRODUCTION_ENV
)
from .decorators import log_query_execution
from .exceptions import ValidationError, normalize_database_error
from .transactions import AsyncTransactionManager
from .types import (
    BulkUpdate, ChannelCallback, DatabaseStats, QueryResult, Subscription
)
from .utils import (
    build_set_clause, build_table, build_where_clause, chunk_list,
    safe_identifier, to_query_result
)

logger = logging.getLogger(__name__)

TransactionCallback = Callable[[AsyncConnection], Union[Awaitable[Any], Any]]


class AsyncPostgresDB(ConnectionManager):
    """
    Async PostgreSQL session object

    Features:
    - Pool lifecycle with retrying connect (see ConnectionManager)
    - Parameterized and raw statements with uniform error normalization
    - Transactions, bulk insert/update, upsert
    - LISTEN/NOTIFY channels and subscriptions
    - Migration runner and seeding entry points

    Usage:
        db = AsyncPostgresDB(config)
        await db.connect()
        rows = await db.query("SELECT * FROM users WHERE id = :id", {"id": user_id})
        await db.close()
    """

    def __init__(self, config: DatabaseConfig):
        super().__init__(config)
        logger.info(f"AsyncPostgresDB initialized for database: {config.db_name}")

    # ==================== QUERIES ====================

    @log_query_execution
    async def query(
        self,
        sql: str,
        params: Optional[Dict[str, Any]] = None,
        conn: Optional[AsyncConnection] = None
    ) -> QueryResult:
        """
        Execute a statement with named bind parameters

        The statement text is used as given, so dynamically built SQL must
        only interpolate identifiers that went through safe_identifier().

        Args:
            sql: Statement text (``:name`` placeholders)
            params: Bind parameters
            conn: Run on this connection (e.g. inside a transaction);
                without it the statement runs in its own committed transaction

        Returns:
            Rows as dictionaries; ``count`` holds affected rows for DML
        """
        engine = self.get_engine()
        statement = text(sql)

        try:
            if conn is not None:
                result = await conn.execute(statement, params or {})
                return to_query_result(result)

            async with engine.begin() as pool_conn:
                result = await pool_conn.execute(statement, params or {})
                return to_query_result(result)

        except Exception as e:
            raise normalize_database_error(e, "Query execution")

    async def query_file(self, filepath: Union[str, Path], params: Optional[Dict[str, Any]] = None) -> QueryResult:
        """Execute the statement stored in a SQL file"""
        self.get_engine()
        try:
            sql = Path(filepath).read_text(encoding="utf-8")
            return await self.query(sql, params)
        except Exception as e:
            raise normalize_database_error(e, f"Query file execution: {filepath}")

    async def execute_script(self, conn: AsyncConnection, script: str) -> None:
        """
        Run a multi-statement script on the driver connection

        Must be called inside a transaction from begin(); the probe makes
        sure the driver-level transaction is open before the script runs.
        """
        await conn.execute(text("SELECT 1"))
        driver = await driver_connection(conn)
        await driver.execute(script)

    # ==================== TRANSACTIONS ====================

    @asynccontextmanager
    async def _transaction_scope(
        self,
        isolation_level: Optional[str],
        context: str
    ) -> AsyncIterator[AsyncConnection]:
        engine = self.get_engine()
        try:
            async with AsyncTransactionManager(engine).begin(isolation_level) as conn:
                yield conn
        except Exception as e:
            raise normalize_database_error(e, context)

    @asynccontextmanager
    async def begin(self, isolation_level: Optional[str] = None) -> AsyncIterator[AsyncConnection]:
        """
        Async context manager for database transactions

        Usage:
            async with db.begin() as conn:
                await db.query("INSERT ...", params, conn=conn)
        """
        async with self._transaction_scope(isolation_level, "Transaction execution") as conn:
            yield conn

    async def transaction(
        self,
        callback: TransactionCallback,
        isolation_level: Optional[str] = None
    ) -> Any:
        """
        Run ``callback(conn)`` in one transaction

        Commits when the callback returns, rolls back when it raises.
        Nesting is left to the callback.

        Returns:
            Whatever the callback returns
        """
        async with self.begin(isolation_level) as conn:
            result = callback(conn)
            if inspect.isawaitable(result):
                result = await result
            return result

    # ==================== BULK OPERATIONS ====================

    @log_query_execution
    async def bulk_insert(
        self,
        table_name: str,
        records: Sequence[Dict[str, Any]],
        columns: Optional[Sequence[str]] = None,
        batch_size: int = DEFAULT_BULK_INSERT_BATCH_SIZE
    ) -> int:
        """
        Insert records in sequential batches

        Args:
            table_name: Target table
            records: Rows to insert
            columns: Columns to insert (keys of the first record by default)
            batch_size: Rows per INSERT statement

        Returns:
            Total number of inserted rows
        """
        records = list(records)
        if not records:
            return 0

        cols = list(columns or records[0].keys())
        table = build_table(table_name, cols)
        batches = chunk_list(records, batch_size)
        engine = self.get_engine()
        total_inserted = 0

        try:
            for batch in batches:
                values = [{col: record.get(col) for col in cols} for record in batch]
                async with engine.begin() as conn:
                    result = await conn.execute(insert(table).values(values))
                    total_inserted += max(result.rowcount or 0, 0)
            return total_inserted
        except Exception as e:
            raise normalize_database_error(e, f"Bulk insert into {table_name}")

    @log_query_execution
    async def bulk_update(
        self,
        table_name: str,
        updates: Sequence[Union[BulkUpdate, Dict[str, Any]]],
        batch_size: int = DEFAULT_BULK_UPDATE_BATCH_SIZE
    ) -> int:
        """
        Apply per-row updates inside a single transaction

        Any failing row aborts the whole transaction.

        Returns:
            Total number of updated rows
        """
        items = [BulkUpdate.coerce(update) for update in updates]
        if not items:
            return 0

        safe_table = safe_identifier(table_name, "table")
        batches = chunk_list(items, batch_size)
        total_updated = 0

        async with self._transaction_scope(None, f"Bulk update in {table_name}") as conn:
            for batch in batches:
                for item in batch:
                    set_clause, params = build_set_clause(item.data, param_prefix="set_")
                    where_clause, where_params = build_where_clause(item.where, param_prefix="where_")
                    params.update(where_params)
                    result = await conn.execute(
                        text(f"UPDATE {safe_table} SET {set_clause} WHERE {where_clause}"),
                        params
                    )
                    total_updated += max(result.rowcount or 0, 0)

        return total_updated

    @log_query_execution
    async def upsert(
        self,
        table_name: str,
        records: Sequence[Dict[str, Any]],
        conflict_columns: Sequence[str],
        update_columns: Optional[Sequence[str]] = None
    ) -> QueryResult:
        """
        INSERT ... ON CONFLICT (keys) DO UPDATE ... RETURNING *

        Args:
            table_name: Target table
            records: Rows to insert
            conflict_columns: Columns of the unique constraint
            update_columns: Columns overwritten on conflict (all non-key
                columns by default)

        Returns:
            Resulting rows
        """
        records = list(records)
        if not records:
            return QueryResult()
        if not conflict_columns:
            raise ValidationError("Upsert requires at least one conflict column")

        columns = list(records[0].keys())
        update_cols = list(update_columns) if update_columns else [
            col for col in columns if col not in conflict_columns
        ]
        all_columns = list(dict.fromkeys([*columns, *conflict_columns, *update_cols]))
        table = build_table(table_name, all_columns)

        stmt = pg_insert(table).values([{col: record.get(col) for col in columns} for record in records])
        if update_cols:
            stmt = stmt.on_conflict_do_update(
                index_elements=list(conflict_columns),
                set_={col: stmt.excluded[col] for col in update_cols}
            )
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=list(conflict_columns))
        stmt = stmt.returning(literal_column("*"))

        engine = self.get_engine()
        try:
            async with engine.begin() as conn:
                result = await conn.execute(stmt)
                return to_query_result(result)
        except Exception as e:
            raise normalize_database_error(e, f"Upsert into {table_name}")

    # ==================== LISTEN / NOTIFY ====================

    def _make_channel_handler(self, channel: str) -> Callable:
        """Driver-level handler fanning a notification out to the registered callbacks"""

        def handler(connection, pid, channel_name, payload):
            for callback in list(self._listeners.get(channel, ())):
                try:
                    outcome = callback(payload)
                    if inspect.isawaitable(outcome):
                        asyncio.ensure_future(outcome)
                except Exception:
                    logger.exception(f"[Database] Listener callback failed on channel {channel}")

        return handler

    async def listen(self, channel: str, callback: ChannelCallback) -> None:
        """Register ``callback(payload)`` for notifications on ``channel``"""
        engine = self.get_engine()
        safe_identifier(channel, "channel")

        # One entry per registration; the same callback may be registered twice
        callbacks = self._listeners.setdefault(channel, [])
        callbacks.append(callback)
        try:
            if channel not in self._listener_handlers:
                if self._listener_conn is None:
                    self._listener_conn = await engine.connect()
                driver = await driver_connection(self._listener_conn)
                handler = self._make_channel_handler(channel)
                await driver.add_listener(channel, handler)
                self._listener_handlers[channel] = handler
            logger.info(f"[Database] Listening on channel: {channel}")
        except Exception as e:
            callbacks.remove(callback)
            if not callbacks:
                self._listeners.pop(channel, None)
            raise normalize_database_error(e, f"Listen on channel {channel}")

    async def unlisten(self, channel: str) -> None:
        """Stop every callback on ``channel``"""
        self.get_engine()
        try:
            handler = self._listener_handlers.pop(channel, None)
            if handler is not None and self._listener_conn is not None:
                driver = await driver_connection(self._listener_conn)
                await driver.remove_listener(channel, handler)
            self._listeners.pop(channel, None)
            for subscription in self._subscriptions.pop(channel, []):
                subscription.active = False
            logger.info(f"[Database] Stopped listening on channel: {channel}")
        except Exception as e:
            raise normalize_database_error(e, f"Unlisten channel {channel}")

    async def notify(self, channel: str, payload: Optional[str] = None) -> None:
        """Send a notification; delivered when the statement commits"""
        engine = self.get_engine()
        safe_identifier(channel, "channel")
        try:
            async with engine.begin() as conn:
                await conn.execute(
                    text("SELECT pg_notify(:channel, :payload)"),
                    {"channel": channel, "payload": payload or ""}
                )
            logger.info(f"[Database] Notification sent to channel: {channel}")
        except Exception as e:
            raise normalize_database_error(e, f"Notify channel {channel}")

    async def subscribe(self, channel: str, callback: ChannelCallback) -> Subscription:
        """
        Listen on ``channel`` and return a handle to stop it later

        Subscriptions still active at close() are unsubscribed there.
        """
        await self.listen(channel, callback)
        subscription = Subscription(
            channel=channel,
            callback=callback,
            _unsubscribe=self._remove_subscription
        )
        self._subscriptions.setdefault(channel, []).append(subscription)
        logger.info(f"[Database] Subscribed to: {channel}")
        return subscription

    async def _remove_subscription(self, subscription: Subscription) -> None:
        channel = subscription.channel
        remaining = [s for s in self._subscriptions.get(channel, []) if s is not subscription]
        if remaining:
            self._subscriptions[channel] = remaining
        else:
            self._subscriptions.pop(channel, None)

        callbacks = self._listeners.get(channel)
        if callbacks is not None and subscription.callback in callbacks:
            callbacks.remove(subscription.callback)
            if not callbacks:
                await self.unlisten(channel)

    # ==================== UTILITIES ====================

    async def get_stats(self) -> DatabaseStats:
        """Server-side connection and size statistics"""
        result = await self.query(
            """
            SELECT
              (SELECT count(*) FROM pg_stat_activity WHERE state = 'active') AS active_connections,
              (SELECT count(*) FROM pg_stat_activity) AS total_connections,
              (SELECT pg_size_pretty(pg_database_size(current_database()))) AS database_size,
              (SELECT date_trunc('second', now() - pg_postmaster_start_time())::text) AS uptime
            """
        )
        stats = result.first() or {}
        return DatabaseStats(
            active_connections=int(stats.get("active_connections") or 0),
            total_connections=int(stats.get("total_connections") or 0),
            database_size=str(stats.get("database_size") or ""),
            uptime=str(stats.get("uptime") or ""),
        )

    @asynccontextmanager
    async def reserve(self) -> AsyncIterator[AsyncConnection]:
        """Hold one pooled connection for the duration of the block"""
        engine = self.get_engine()
        try:
            async with engine.connect() as conn:
                yield conn
        except Exception as e:
            raise normalize_database_error(e, "Reserve connection")

    async def seed(self, env: str = "development", seeds_dir: Union[str, Path] = DEFAULT_SEEDS_DIR) -> bool:
        """
        Run ``<seeds_dir>/<env>.sql``; never in production

        Returns:
            True when the seed ran; a missing or failing seed is logged
        """
        if env == PRODUCTION_ENV:
            logger.warning("[Database] Skipping seed in production environment")
            return False

        self.get_engine()
        seed_file = Path(seeds_dir) / f"{env}.sql"
        try:
            script = seed_file.read_text(encoding="utf-8")
            logger.info(f"[Database] Running seed for environment: {env}")
            async with self.begin() as conn:
                await self.execute_script(conn, script)
        except Exception as e:
            logger.warning(f"[Database] Seed file not found or failed: {e}")
            return False

        logger.info("[Database] Seed completed successfully")
        return True

    # ==================== MIGRATIONS ====================

    async def run_migrations(
        self,
        migrations_dir: Union[str, Path] = DEFAULT_MIGRATIONS_DIR,
        target: Optional[str] = None
    ) -> List[str]:
        """Apply pending migrations (see MigrationRunner.run_migrations)"""
        from .migrations import MigrationRunner
        return await MigrationRunner(self, migrations_dir).run_migrations(target)

    async def rollback_migrations(
        self,
        migrations_dir: Union[str, Path] = DEFAULT_MIGRATIONS_DIR,
        target: Optional[str] = None
    ) -> List[str]:
        """Revert applied migrations (see MigrationRunner.rollback_migrations)"""
        from .migrations import MigrationRunner
        return await MigrationRunner(self, migrations_dir).rollback_migrations(target)
