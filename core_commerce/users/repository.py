# core_commerce/users/repository.py
"""
User persistence on top of AsyncPostgresDB
"""
import logging
from typing import Any, Dict, List, Mapping, Optional, Union, TYPE_CHECKING

from ..exceptions import DatabaseOperationError, ValidationError
from ..utils import build_set_clause
from .dtos import CreateUserDTO, UpdateUserDTO
from .exceptions import UserNotFoundAfterUpdateError
from .types import User, UserRole, UserStatus

if TYPE_CHECKING:
    from ..async_postgres import AsyncPostgresDB

logger = logging.getLogger(__name__)

# Accepted update keys -> users column
UPDATABLE_COLUMNS = {
    "first_name": "first_name",
    "firstName": "first_name",
    "last_name": "last_name",
    "lastName": "last_name",
    "phone_number": "phone_number",
    "phoneNumber": "phone_number",
}


def map_row_to_user(row: Mapping[str, Any]) -> User:
    """Storage row (snake_case columns) to User; addresses are not loaded"""
    return User(
        id=str(row["id"]),
        first_name=row["first_name"],
        last_name=row["last_name"],
        email=row["email"],
        phone_number=row.get("phone_number"),
        role=row.get("role") or UserRole.CUSTOMER,
        status=row.get("status") or UserStatus.ACTIVE,
        last_login_at=row.get("last_login_at"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
        addresses=[],
    )


def resolve_update_fields(fields: Union[UpdateUserDTO, Mapping[str, Any]]) -> Dict[str, Any]:
    """Map update keys to column names; unknown keys are rejected"""
    if isinstance(fields, UpdateUserDTO):
        fields = fields.to_fields()

    columns: Dict[str, Any] = {}
    for key, value in fields.items():
        column = UPDATABLE_COLUMNS.get(key)
        if column is None:
            raise ValidationError(f"Unknown field: {key}", field=key)
        columns[column] = value
    return columns


class UserRepository:
    """CRUD for the users table"""

    def __init__(self, db: "AsyncPostgresDB"):
        self.db = db

    map_row_to_user = staticmethod(map_row_to_user)

    async def create(self, dto: CreateUserDTO, password_hash: str) -> User:
        """Insert a CUSTOMER/ACTIVE user with a pre-computed password hash"""
        result = await self.db.query(
            """
            INSERT INTO users (first_name, last_name, email, password_hash, role, status)
            VALUES (:first_name, :last_name, :email, :password_hash, :role, :status)
            RETURNING *
            """,
            {
                "first_name": dto.first_name,
                "last_name": dto.last_name,
                "email": dto.email,
                "password_hash": password_hash,
                "role": UserRole.CUSTOMER.value,
                "status": UserStatus.ACTIVE.value,
            }
        )
        row = result.first()
        if row is None:
            raise DatabaseOperationError("create", "User creation returned no row")
        return map_row_to_user(row)

    async def find_by_id(self, user_id: str) -> Optional[User]:
        result = await self.db.query("SELECT * FROM users WHERE id = :id", {"id": user_id})
        row = result.first()
        return map_row_to_user(row) if row else None

    async def find_by_email(self, email: str) -> Optional[User]:
        result = await self.db.query("SELECT * FROM users WHERE email = :email", {"email": email})
        row = result.first()
        return map_row_to_user(row) if row else None

    async def find_one_by(self, criteria: Optional[Mapping[str, Any]]) -> Optional[User]:
        """Only ``email`` is supported; other criteria find nothing"""
        if criteria and criteria.get("email"):
            return await self.find_by_email(criteria["email"])
        return None

    async def list(self) -> List[User]:
        result = await self.db.query("SELECT * FROM users ORDER BY email")
        return [map_row_to_user(row) for row in result]

    async def update(self, user_id: str, fields: Union[UpdateUserDTO, Mapping[str, Any]]) -> User:
        """
        Write the given fields, then return the row re-read by id

        Raises:
            ValidationError: no fields, or a field that is not updatable
            UserNotFoundAfterUpdateError: the row is gone after the write
        """
        columns = resolve_update_fields(fields)
        if not columns:
            raise ValidationError("No fields to update")

        set_clause, params = build_set_clause(columns)
        params["id"] = user_id
        await self.db.query(f"UPDATE users SET {set_clause} WHERE id = :id", params)

        updated = await self.find_by_id(user_id)
        if updated is None:
            raise UserNotFoundAfterUpdateError(user_id)
        return updated

    async def delete(self, user_id: str) -> bool:
        """True when exactly one row was removed"""
        result = await self.db.query("DELETE FROM users WHERE id = :id", {"id": user_id})
        return result.count == 1
