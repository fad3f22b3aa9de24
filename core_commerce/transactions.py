# core_commerce/transactions.py
"""
Transaction management for atomic operations
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from .constants import VALID_ISOLATION_LEVELS
from .exceptions import ValidationError

logger = logging.getLogger(__name__)


def validate_isolation_level(isolation_level: str) -> str:
    level = isolation_level.strip().upper()
    if level not in VALID_ISOLATION_LEVELS:
        raise ValidationError(
            f"Invalid isolation level: {isolation_level}. "
            f"Valid options: {list(VALID_ISOLATION_LEVELS)}"
        )
    return level


class AsyncTransactionManager:
    """Async transaction manager with isolation level support"""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    @asynccontextmanager
    async def begin(self, isolation_level: Optional[str] = None) -> AsyncIterator[AsyncConnection]:
        """
        Begin an async transaction with specified isolation level

        Commits when the block exits normally, rolls back when it raises.

        Args:
            isolation_level: SQL isolation level (server default when None)

        Yields:
            Connection bound to the transaction
        """
        level = validate_isolation_level(isolation_level) if isolation_level else None

        async with self.engine.begin() as conn:
            if level:
                # Only valid as the first statement of the transaction
                await conn.execute(text(f"SET TRANSACTION ISOLATION LEVEL {level}"))
            logger.debug(f"Async transaction started with isolation: {level or 'server default'}")
            try:
                yield conn
            except Exception as e:
                logger.error(f"Async transaction rollback: {e}")
                raise
        logger.debug("Async transaction committed successfully")
