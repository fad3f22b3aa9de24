"""
Tests for the connection lifecycle
"""
import asyncio
from unittest.mock import AsyncMock

import pytest

from core_commerce import AsyncPostgresDB
from core_commerce.connection import ConnectionManager
from core_commerce.exceptions import ConnectionError, NotConnectedError, QueryError

from tests.helpers import FakeEngine, make_config

pytestmark = pytest.mark.asyncio


def make_manager(config=None) -> ConnectionManager:
    manager = ConnectionManager(config or make_config())
    manager._sleep = AsyncMock()
    return manager


class TestConnect:
    """Test connect with retries"""

    async def test_connect_success(self, engine_factory):
        """Test a healthy first attempt"""
        # Arrange
        manager = make_manager()

        # Act
        await manager.connect()

        # Assert
        assert manager.is_connected() is True
        assert manager.get_engine() is engine_factory.return_value
        assert manager.get_connection_attempts() == 0
        manager._sleep.assert_not_awaited()

    async def test_engine_options(self, engine_factory):
        """Test pool options derive from the configuration"""
        manager = make_manager(make_config(max_connections=15, connect_timeout=5, ssl=True))

        await manager.connect()

        url = engine_factory.call_args.args[0]
        kwargs = engine_factory.call_args.kwargs
        assert url.database == "shop_test"
        assert kwargs["pool_size"] == 15
        assert kwargs["max_overflow"] == 0
        assert kwargs["pool_timeout"] == 5
        assert kwargs["connect_args"]["timeout"] == 5
        assert kwargs["connect_args"]["ssl"] == "require"

    async def test_connect_database_override(self, engine_factory):
        """Test db_name overrides the configured database"""
        manager = make_manager()

        await manager.connect(db_name="reporting")

        assert engine_factory.call_args.args[0].database == "reporting"

    async def test_connect_is_noop_when_connected(self, engine_factory):
        """Test a second connect does not build another pool"""
        manager = make_manager()

        await manager.connect()
        await manager.connect()

        assert engine_factory.call_count == 1

    async def test_retry_then_success(self, engine_factory):
        """Test a failed attempt is retried after backing off"""
        # Arrange
        failing = FakeEngine(probe_error=OSError("connection refused"))
        healthy = FakeEngine()
        engine_factory.side_effect = [failing, healthy]
        manager = make_manager()

        # Act
        await manager.connect()

        # Assert
        assert manager.get_engine() is healthy
        assert failing.disposed is True
        assert [c.args[0] for c in manager._sleep.await_args_list] == [2]
        assert manager.get_connection_attempts() == 0

    async def test_exponential_backoff_and_failure(self, engine_factory):
        """Test waits of 2 and 4 seconds, then ConnectionError"""
        # Arrange
        cause = OSError("connection refused")
        engine_factory.side_effect = [FakeEngine(probe_error=cause) for _ in range(3)]
        manager = make_manager()

        # Act
        with pytest.raises(ConnectionError) as exc_info:
            await manager.connect(retries=3)

        # Assert
        error = exc_info.value
        assert error.message == "Database connection failed after 3 attempts"
        assert error.attempts == 3
        assert error.original_error is cause
        assert [c.args[0] for c in manager._sleep.await_args_list] == [2, 4]
        assert manager.is_connected() is False
        assert manager.get_connection_attempts() == 3

    async def test_probe_without_row_fails(self, engine_factory):
        """Test an empty probe result counts as a failed attempt"""
        engine_factory.return_value = FakeEngine(probe_rows=[])
        manager = make_manager()

        with pytest.raises(ConnectionError) as exc_info:
            await manager.connect(retries=1)

        assert "no result returned" in str(exc_info.value.original_error)
        manager._sleep.assert_not_awaited()
        assert engine_factory.return_value.disposed is True

    async def test_invalid_retries(self, engine_factory):
        """Test retries must allow one attempt"""
        manager = make_manager()
        with pytest.raises(ValueError):
            await manager.connect(retries=0)

    async def test_context_manager(self, engine_factory):
        """Test async with connects and closes"""
        async with make_manager() as manager:
            assert manager.is_connected() is True
        assert manager.is_connected() is False
        assert engine_factory.return_value.disposed is True


class TestState:
    """Test state accessors"""

    async def test_not_connected(self, db_config):
        """Test operations fail fast before connect"""
        db = AsyncPostgresDB(db_config)

        with pytest.raises(NotConnectedError):
            db.get_engine()
        with pytest.raises(NotConnectedError):
            await db.query("SELECT 1")

    async def test_get_config_returns_copy(self, db_config):
        """Test configuration accessor"""
        manager = ConnectionManager(db_config)
        config = manager.get_config()
        assert config == db_config
        assert config is not db_config


class TestHealthCheck:
    """Test health checks"""

    async def test_not_connected(self, db_config):
        """Test health check before connect"""
        manager = ConnectionManager(db_config)

        result = await manager.health_check()

        assert result.connected is False
        assert result.error == "Not connected"
        assert manager.get_last_health_check() is result

    async def test_healthy(self, db, fake_engine):
        """Test latency is measured"""
        result = await db.health_check()

        assert result.connected is True
        assert result.latency_ms is not None and result.latency_ms >= 0
        assert result.error is None
        assert db.get_last_health_check() is result

    async def test_failure_does_not_raise(self, db, fake_engine):
        """Test probe failure is reported, not raised"""
        fake_engine.probe_error = OSError("server closed the connection")

        result = await db.health_check()

        assert result.connected is False
        assert result.error == "server closed the connection"


class TestClose:
    """Test graceful close"""

    async def test_close(self, db, fake_engine):
        """Test pool is disposed and state cleared"""
        await db.close()

        assert fake_engine.disposed is True
        assert db.is_connected() is False
        with pytest.raises(NotConnectedError):
            db.get_engine()

    async def test_close_is_idempotent(self, db, db_config):
        """Test closing twice or before connect"""
        await db.close()
        await db.close()
        await ConnectionManager(db_config).close()

    async def test_close_releases_listeners(self, db, fake_engine):
        """Test listeners and the listener connection are released"""
        # Arrange
        await db.listen("orders", lambda payload: None)
        listener_conn = db._listener_conn

        # Act
        await db.close()

        # Assert
        assert fake_engine.driver.listeners == {}
        assert listener_conn.closed is True
        assert db._listeners == {}

    async def test_close_unsubscribe_failure_is_logged(self, db, fake_engine):
        """Test listener release failures do not abort close"""
        # Arrange
        await db.subscribe("orders", lambda payload: None)
        fake_engine.driver.remove_error = OSError("connection lost")

        # Act
        await db.close()

        # Assert
        assert fake_engine.disposed is True
        assert db._subscriptions == {}
        assert db.is_connected() is False

    async def test_close_timeout(self, db, fake_engine, caplog):
        """Test a slow drain is bounded by the timeout and reported as such"""
        async def slow_dispose():
            await asyncio.sleep(5)

        fake_engine.dispose = slow_dispose

        with caplog.at_level("INFO", logger="core_commerce.connection"):
            await db.close(timeout=0.01)

        assert db.is_connected() is False
        assert "did not drain within 0.01s" in caplog.text
        assert "closed successfully" not in caplog.text

    async def test_close_failure_clears_state(self, db, fake_engine):
        """Test dispose errors are raised after clearing state"""
        fake_engine.dispose_error = RuntimeError("pool broken")

        with pytest.raises(QueryError):
            await db.close()

        assert db.is_connected() is False
