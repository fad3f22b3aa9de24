# core_commerce/utils.py
"""
Utility functions for database operations
"""
import re
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import column, table
from sqlalchemy.sql.expression import TableClause

from .constants import IDENTIFIER_PATTERN
from .exceptions import ValidationError
from .types import QueryResult

logger = logging.getLogger(__name__)


def validate_identifier(name: str, kind: str = "identifier", pattern: str = IDENTIFIER_PATTERN) -> None:
    """
    Validate a table/column/channel name against SQL injection
    Raises ValidationError if invalid
    """
    if not name:
        raise ValidationError(f"{kind.capitalize()} name cannot be empty")

    if not isinstance(name, str) or not re.match(pattern, name):
        raise ValidationError(
            f"Invalid {kind} name '{name}'. "
            f"Must match pattern: {pattern}"
        )


def safe_identifier(name: str, kind: str = "identifier") -> str:
    """Return the name once validated"""
    validate_identifier(name, kind)
    return name


def build_table(name: str, columns: Iterable[str]) -> TableClause:
    """Lightweight table clause for Core statements (no reflection)"""
    safe_name = safe_identifier(name, "table")
    cols = [column(safe_identifier(col, "column")) for col in columns]
    return table(safe_name, *cols)


def rows_to_dicts(result) -> List[Dict[str, Any]]:
    """
    Convert SQLAlchemy result to list of dictionaries
    Statements without a result set give an empty list
    """
    if result is None or not result.returns_rows:
        return []
    return [dict(row._mapping) for row in result]


def to_query_result(result) -> QueryResult:
    """Wrap a SQLAlchemy result with its row count"""
    if result is not None and result.returns_rows:
        return QueryResult(rows_to_dicts(result))
    rowcount = getattr(result, "rowcount", 0) if result is not None else 0
    return QueryResult(count=max(rowcount or 0, 0))


def build_set_clause(
    fields: Dict[str, Any],
    param_prefix: str = ""
) -> Tuple[str, Dict[str, Any]]:
    """
    Build ``col = :param, ...`` with its bind parameters

    Args:
        fields: Column name to value mapping
        param_prefix: Prefix for parameter names, to keep them unique

    Returns:
        SET clause text and parameters
    """
    if not fields:
        raise ValidationError("No fields to update")

    parts = []
    params = {}
    for col, value in fields.items():
        safe_col = safe_identifier(col, "column")
        param = f"{param_prefix}{safe_col}"
        parts.append(f"{safe_col} = :{param}")
        params[param] = value
    return ", ".join(parts), params


def build_where_clause(
    conditions: Dict[str, Any],
    param_prefix: str = "where_"
) -> Tuple[str, Dict[str, Any]]:
    """Build ``col = :param AND ...`` (``IS NULL`` for None values)"""
    if not conditions:
        raise ValidationError("At least one condition is required")

    parts = []
    params = {}
    for col, value in conditions.items():
        safe_col = safe_identifier(col, "column")
        if value is None:
            parts.append(f"{safe_col} IS NULL")
            continue
        param = f"{param_prefix}{safe_col}"
        parts.append(f"{safe_col} = :{param}")
        params[param] = value
    return " AND ".join(parts), params


def chunk_list(data: Sequence[Any], chunk_size: int) -> List[Sequence[Any]]:
    """
    Split list into chunks of specified size

    Args:
        data: List to chunk
        chunk_size: Size of each chunk

    Returns:
        List of chunks
    """
    if chunk_size <= 0:
        raise ValidationError("Chunk size must be positive")

    return [data[i:i + chunk_size] for i in range(0, len(data), chunk_size)]


def parse_migration_filename(filename: str, suffix: str = ".sql") -> Optional[Tuple[str, str]]:
    """Split ``<version>_<name>.sql`` into (version, name)"""
    if not filename.endswith(suffix):
        return None
    stem = filename[:-len(suffix)]
    version, _, name = stem.partition("_")
    if not version:
        return None
    return version, name
