"""
In-memory stand-ins for the SQLAlchemy async engine used by the tests
"""
from collections import deque
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

from sqlalchemy.dialects import postgresql
from sqlalchemy.sql.elements import TextClause

from core_commerce import AsyncPostgresDB, DatabaseConfig
from core_commerce.constants import CONNECTION_PROBE_QUERY, HEALTH_CHECK_QUERY

PROBE_QUERIES = (CONNECTION_PROBE_QUERY, HEALTH_CHECK_QUERY)


def statement_sql(statement) -> str:
    """SQL text of a text() clause, or a Core statement rendered for PostgreSQL"""
    if isinstance(statement, TextClause):
        return statement.text
    return str(statement.compile(dialect=postgresql.dialect()))


class FakeRow:
    def __init__(self, mapping: Dict[str, Any]):
        self._mapping = mapping


class FakeResult:
    """Mimics a CursorResult: rows=None means the statement returns no rows"""

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, rowcount: Optional[int] = None):
        self._rows = rows
        self.returns_rows = rows is not None
        self.rowcount = rowcount if rowcount is not None else len(rows or [])

    def first(self):
        return FakeRow(self._rows[0]) if self._rows else None

    def __iter__(self):
        return iter([FakeRow(row) for row in self._rows or []])


class FakeDriverConnection:
    """The asyncpg connection behind a FakeConnection"""

    def __init__(self):
        self.scripts: List[str] = []
        self.listeners: Dict[str, Any] = {}
        self.script_error: Optional[Exception] = None
        self.remove_error: Optional[Exception] = None

    async def execute(self, script: str):
        if self.script_error is not None:
            raise self.script_error
        self.scripts.append(script)

    async def add_listener(self, channel, handler):
        self.listeners[channel] = handler

    async def remove_listener(self, channel, handler):
        if self.remove_error is not None:
            raise self.remove_error
        self.listeners.pop(channel, None)

    def notify(self, channel: str, payload: str):
        """Deliver a notification the way asyncpg calls listener handlers"""
        self.listeners[channel](self, 1234, channel, payload)


class FakeConnection:
    """Awaitable and usable as ``async with``, like AsyncConnection"""

    def __init__(self, engine: "FakeEngine"):
        self.engine = engine
        self.closed = False

    async def execute(self, statement, params=None):
        return self.engine.handle(statement, params)

    async def get_raw_connection(self):
        return SimpleNamespace(driver_connection=self.engine.driver)

    async def close(self):
        self.closed = True

    async def _start(self):
        return self

    def __await__(self):
        return self._start().__await__()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
        return False


class FakeTransaction:
    def __init__(self, engine: "FakeEngine"):
        self.engine = engine
        self.state = "open"

    async def __aenter__(self):
        self.engine.transactions.append(self)
        return FakeConnection(self.engine)

    async def __aexit__(self, exc_type, exc, tb):
        self.state = "rolled_back" if exc_type else "committed"
        return False


class FakeEngine:
    """
    Records executed statements and answers them from a script

    Probe queries are answered with ``probe_rows`` (or raise ``probe_error``);
    ``SET`` statements return nothing; every other statement consumes the
    next entry of ``results`` (an exception entry is raised).
    """

    def __init__(self, probe_rows=None, probe_error: Optional[Exception] = None):
        self.probe_rows = [{"test": 1}] if probe_rows is None else probe_rows
        self.probe_error = probe_error
        self.results = deque()
        self.executed: List[tuple] = []
        self.transactions: List[FakeTransaction] = []
        self.driver = FakeDriverConnection()
        self.disposed = False
        self.dispose_error: Optional[Exception] = None
        self.connections = 0

    def queue(self, *results):
        self.results.extend(results)
        return self

    def handle(self, statement, params):
        sql = statement_sql(statement)
        if sql in PROBE_QUERIES:
            if self.probe_error is not None:
                raise self.probe_error
            return FakeResult(self.probe_rows)

        self.executed.append((statement, params))
        if sql.startswith("SET "):
            return FakeResult()
        if not self.results:
            return FakeResult(rowcount=0)
        result = self.results.popleft()
        if isinstance(result, Exception):
            raise result
        return result

    @property
    def statements(self) -> List[str]:
        return [statement_sql(statement) for statement, _ in self.executed]

    def connect(self):
        self.connections += 1
        return FakeConnection(self)

    def begin(self):
        return FakeTransaction(self)

    async def dispose(self):
        if self.dispose_error is not None:
            raise self.dispose_error
        self.disposed = True


class FakePostgresError(Exception):
    """Driver error exposing the asyncpg diagnostic attributes"""

    def __init__(self, message, sqlstate=None, detail=None, hint=None, position=None, query=None):
        super().__init__(message)
        self.message = message
        self.sqlstate = sqlstate
        self.detail = detail
        self.hint = hint
        self.position = position
        self.query = query


def make_config(**overrides) -> DatabaseConfig:
    params = dict(host="localhost", db_name="shop_test", username="test", password="test")
    params.update(overrides)
    return DatabaseConfig(**params)


def connected_db(engine: FakeEngine, config: Optional[DatabaseConfig] = None) -> AsyncPostgresDB:
    """Database object wired to a fake engine without running connect()"""
    db = AsyncPostgresDB(config or make_config())
    db._engine = engine
    db._connected = True
    return db


def user_row(**overrides) -> Dict[str, Any]:
    row = {
        "id": "6f1c2a9e-0000-4000-8000-000000000001",
        "first_name": "John",
        "last_name": "Doe",
        "email": "john@example.com",
        "password_hash": "hashed",
        "phone_number": None,
        "role": "CUSTOMER",
        "status": "ACTIVE",
        "last_login_at": None,
        "created_at": None,
        "updated_at": None,
    }
    row.update(overrides)
    return row
