"""
Test configuration and fixtures for core_commerce tests
"""
import os
import sys
from unittest.mock import AsyncMock, Mock

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from core_commerce import DatabaseConfig  # noqa: E402
from core_commerce.users import UserRepository  # noqa: E402
from core_commerce.types import QueryResult  # noqa: E402

from tests.helpers import FakeEngine, connected_db, make_config, user_row  # noqa: E402


@pytest.fixture
def db_config() -> DatabaseConfig:
    return make_config()


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def db(fake_engine, db_config):
    """Connected AsyncPostgresDB backed by the fake engine"""
    return connected_db(fake_engine, db_config)


@pytest.fixture
def engine_factory(monkeypatch):
    """Replace create_async_engine; set ``factory.side_effect`` to script engines"""
    factory = Mock(return_value=FakeEngine())
    monkeypatch.setattr("core_commerce.connection.create_async_engine", factory)
    return factory


# Repository fixtures
@pytest.fixture
def mock_db():
    """Database double whose query() is scripted per test"""
    mock = Mock()
    mock.query = AsyncMock(return_value=QueryResult())
    return mock


@pytest.fixture
def repository(mock_db) -> UserRepository:
    return UserRepository(mock_db)


@pytest.fixture
def sample_user_row():
    return user_row()
