# core_commerce/types.py
"""
Type definitions for database operations
"""
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone

from .exceptions import ValidationError


ChannelCallback = Callable[[str], Any]


class QueryResult(list):
    """
    Rows returned by a statement, as dictionaries

    ``count`` holds the number of rows returned, or the number of rows
    affected for statements that return nothing.
    """

    def __init__(self, rows: Iterable[Dict[str, Any]] = (), count: Optional[int] = None):
        super().__init__(rows)
        self.count = len(self) if count is None else count

    def first(self) -> Optional[Dict[str, Any]]:
        return self[0] if self else None


@dataclass
class HealthCheckResult:
    """Outcome of a liveness probe"""
    connected: bool
    latency_ms: Optional[float] = None
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class BulkUpdate:
    """One row update for bulk_update: SET ``data`` WHERE ``where``"""
    data: Dict[str, Any]
    where: Dict[str, Any]

    def __post_init__(self):
        if not self.data:
            raise ValidationError("Bulk update data cannot be empty")
        if not self.where:
            raise ValidationError("Bulk update requires at least one WHERE condition")

    @classmethod
    def coerce(cls, value: Any) -> "BulkUpdate":
        if isinstance(value, cls):
            return value
        if not isinstance(value, dict) or "data" not in value or "where" not in value:
            raise ValidationError("Bulk update items need \"data\" and \"where\" mappings")
        try:
            return cls(data=dict(value["data"]), where=dict(value["where"]))
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid bulk update item: {e}") from e


@dataclass(frozen=True)
class MigrationFile:
    """Migration loaded from ``<version>_<name>.sql``"""
    version: str
    name: str
    up: str
    down: Optional[str] = None


@dataclass
class DatabaseStats:
    """Server-side statistics"""
    active_connections: int
    total_connections: int
    database_size: str
    uptime: str


@dataclass
class Subscription:
    """Handle for a channel subscription; ``unsubscribe`` stops delivery"""
    channel: str
    callback: ChannelCallback
    _unsubscribe: Callable[["Subscription"], Awaitable[None]] = field(repr=False)
    active: bool = True

    async def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        await self._unsubscribe(self)
