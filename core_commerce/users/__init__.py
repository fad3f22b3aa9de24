# core_commerce/users/__init__.py
"""
User domain: entities, repository and service
"""
from .dtos import CreateUserDTO, UpdateUserDTO, UpsertAddressDTO
from .exceptions import UserAlreadyExistsError, UserNotFoundAfterUpdateError
from .repository import UserRepository, map_row_to_user
from .security import hash_password, verify_password
from .service import UserService
from .types import Address, User, UserRole, UserStatus

__all__ = [
    "Address",
    "User",
    "UserRole",
    "UserStatus",
    "CreateUserDTO",
    "UpdateUserDTO",
    "UpsertAddressDTO",
    "UserAlreadyExistsError",
    "UserNotFoundAfterUpdateError",
    "UserRepository",
    "UserService",
    "map_row_to_user",
    "hash_password",
    "verify_password",
]
