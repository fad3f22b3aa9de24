# core_commerce/users/service.py
"""
User use cases
"""
import logging
from typing import Callable, List, Optional

from ..exceptions import DuplicateEntryError
from .dtos import CreateUserDTO, UpdateUserDTO
from .exceptions import UserAlreadyExistsError
from .repository import UserRepository
from .security import hash_password
from .types import User

logger = logging.getLogger(__name__)

PasswordHasher = Callable[[str], str]


class UserService:
    """
    Existence checks before mutations are a fast path only; concurrent
    callers can pass them together, so the unique email constraint in
    storage is the real guard.
    """

    def __init__(self, repository: UserRepository, password_hasher: Optional[PasswordHasher] = None):
        self.repository = repository
        self.password_hasher = password_hasher or hash_password

    async def create_user(self, dto: CreateUserDTO) -> User:
        existing = await self.repository.find_by_email(dto.email)
        if existing is not None:
            raise UserAlreadyExistsError(dto.email)

        password_hash = self.password_hasher(dto.password)
        try:
            user = await self.repository.create(dto, password_hash)
        except DuplicateEntryError as e:
            logger.warning(f"Concurrent registration for {dto.email}: {e.message}")
            raise UserAlreadyExistsError(dto.email) from e

        logger.info(f"User created: {user.id}")
        return user

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        return await self.repository.find_by_id(user_id)

    async def get_all_users(self) -> List[User]:
        return await self.repository.list()

    async def update_user(self, user_id: str, dto: UpdateUserDTO) -> Optional[User]:
        if await self.repository.find_by_id(user_id) is None:
            return None
        return await self.repository.update(user_id, dto)

    async def delete_user(self, user_id: str) -> bool:
        if await self.repository.find_by_id(user_id) is None:
            return False
        return await self.repository.delete(user_id)
