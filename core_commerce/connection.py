# core_commerce/connection.py
"""
Connection lifecycle: connect with retries, health checks, graceful close
"""
import asyncio
import dataclasses
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from .config import DatabaseConfig
from .constants import (
    CONNECTION_PROBE_QUERY, DEFAULT_CLOSE_TIMEOUT, DEFAULT_CONNECT_RETRIES,
    HEALTH_CHECK_QUERY
)
from .decorators import connect_retrying
from .exceptions import ConnectionError, NotConnectedError, normalize_database_error
from .types import ChannelCallback, HealthCheckResult, Subscription

logger = logging.getLogger(__name__)


async def driver_connection(conn: AsyncConnection) -> Any:
    """Underlying asyncpg connection of a SQLAlchemy connection"""
    raw = await conn.get_raw_connection()
    return raw.driver_connection


class ConnectionManager:
    """
    Owns one pooled engine per instance

    Lifecycle: construct (no I/O) -> connect() -> operate -> close().
    All query paths go through get_engine(), which fails fast with
    NotConnectedError instead of connecting lazily.
    """

    def __init__(self, config: DatabaseConfig):
        """
        Args:
            config: Database configuration
        """
        self.config = config
        self._engine: Optional[AsyncEngine] = None
        self._connected = False
        self._connection_attempts = 0
        self._last_health_check: Optional[HealthCheckResult] = None

        # channel -> user callbacks, plus the one driver-level handler per channel
        self._listeners: Dict[str, List[ChannelCallback]] = {}
        self._listener_handlers: Dict[str, Callable] = {}
        self._listener_conn: Optional[AsyncConnection] = None
        self._subscriptions: Dict[str, List[Subscription]] = {}

        self._sleep = asyncio.sleep

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # ==================== CONNECT ====================

    def _create_engine(self, db_name: Optional[str] = None) -> AsyncEngine:
        connect_args: Dict[str, Any] = {"timeout": self.config.connect_timeout}
        if self.config.ssl:
            connect_args["ssl"] = "require"
        if self.config.statement_timeout:
            connect_args["server_settings"] = {
                "statement_timeout": str(self.config.statement_timeout)
            }

        return create_async_engine(
            self.config.url(db_name),
            pool_size=self.config.max_connections,
            max_overflow=0,
            pool_timeout=self.config.connect_timeout,
            pool_recycle=self.config.pool_recycle,
            pool_pre_ping=True,
            echo=self.config.debug,
            connect_args=connect_args,
        )

    async def _open(self, db_name: Optional[str]) -> None:
        """One connection attempt: build the pool and probe it"""
        engine = self._create_engine(db_name)
        try:
            async with engine.connect() as conn:
                result = await conn.execute(text(CONNECTION_PROBE_QUERY))
                if result.first() is None:
                    raise ConnectionError("Connection test failed - no result returned")
        except Exception:
            await engine.dispose()
            raise
        self._engine = engine

    async def connect(self, db_name: Optional[str] = None, retries: int = DEFAULT_CONNECT_RETRIES) -> None:
        """
        Establish the pool, retrying with exponential backoff

        Args:
            db_name: Database to connect to instead of the configured one
            retries: Maximum number of attempts

        Raises:
            ConnectionError: after the last failed attempt, with the
                attempt count and the underlying cause
        """
        if self.is_connected():
            logger.debug("[Database] Already connected")
            return

        target = db_name or self.config.db_name
        retrying = connect_retrying(retries, sleep=self._sleep)

        try:
            async for attempt in retrying:
                with attempt:
                    self._connection_attempts = attempt.retry_state.attempt_number
                    await self._open(db_name)
        except Exception as e:
            self._engine = None
            self._connected = False
            logger.error(f"[Database] Connection failed after {self._connection_attempts} attempts: {e}")
            raise ConnectionError(
                f"Database connection failed after {retries} attempts",
                original_error=e,
                attempts=self._connection_attempts,
            ) from e

        self._connected = True
        self._connection_attempts = 0
        logger.info(
            f"[Database] Connected successfully to "
            f"{self.config.host}:{self.config.port}/{target}"
        )

    # ==================== STATE ====================

    def get_engine(self) -> AsyncEngine:
        """Active pool; never connects"""
        if not self.is_connected():
            raise NotConnectedError()
        return self._engine

    def is_connected(self) -> bool:
        return self._engine is not None and self._connected

    def get_config(self) -> DatabaseConfig:
        return dataclasses.replace(self.config)

    def get_last_health_check(self) -> Optional[HealthCheckResult]:
        return self._last_health_check

    def get_connection_attempts(self) -> int:
        return self._connection_attempts

    # ==================== HEALTH ====================

    async def health_check(self) -> HealthCheckResult:
        """Measure probe latency; never raises"""
        start_time = time.perf_counter()

        if not self.is_connected():
            result = HealthCheckResult(connected=False, error="Not connected")
        else:
            try:
                async with self._engine.connect() as conn:
                    await conn.execute(text(HEALTH_CHECK_QUERY))
                latency_ms = (time.perf_counter() - start_time) * 1000
                result = HealthCheckResult(connected=True, latency_ms=latency_ms)
            except Exception as e:
                logger.error(f"[Database] Health check failed: {e}")
                result = HealthCheckResult(connected=False, error=str(e) or type(e).__name__)

        self._last_health_check = result
        return result

    # ==================== CLOSE ====================

    async def _release_subscriptions(self) -> None:
        for channel, subscriptions in list(self._subscriptions.items()):
            for subscription in list(subscriptions):
                try:
                    await subscription.unsubscribe()
                    logger.info(f"[Database] Unsubscribed from: {channel}")
                except Exception as err:
                    logger.warning(f"[Database] Failed to unsubscribe from {channel}: {err}")
        self._subscriptions.clear()

    async def _release_listeners(self) -> None:
        if self._listener_conn is None:
            return
        try:
            driver = await driver_connection(self._listener_conn)
            for channel, handler in list(self._listener_handlers.items()):
                try:
                    await driver.remove_listener(channel, handler)
                except Exception as err:
                    logger.warning(f"[Database] Failed to stop listening on {channel}: {err}")
        finally:
            listener_conn, self._listener_conn = self._listener_conn, None
            self._listener_handlers.clear()
            try:
                await listener_conn.close()
            except Exception as err:
                logger.warning(f"[Database] Failed to close listener connection: {err}")

    async def close(self, timeout: float = DEFAULT_CLOSE_TIMEOUT) -> None:
        """
        Drain and close the pool

        Subscriptions and listeners are released best-effort, then the pool
        is disposed within ``timeout`` seconds. In-memory state is cleared in
        every case; calling close() while disconnected is a no-op.
        """
        try:
            if self._engine is not None and self._connected:
                await self._release_subscriptions()
                await self._release_listeners()
                try:
                    await asyncio.wait_for(self._engine.dispose(), timeout=timeout)
                except asyncio.TimeoutError:
                    logger.warning(
                        f"[Database] Pool did not drain within {timeout}s; dispose was cancelled "
                        f"and connections still checked out are left open"
                    )
                else:
                    logger.info("[Database] Connections closed successfully")
        except Exception as e:
            raise normalize_database_error(e, "Close connections")
        finally:
            self._engine = None
            self._connected = False
            self._listener_conn = None
            self._listeners.clear()
            self._listener_handlers.clear()
            self._subscriptions.clear()
