# core_commerce/users/exceptions.py
from ..exceptions import DatabaseError, ResourceNotFoundError


class UserAlreadyExistsError(DatabaseError):
    """Raised when creating a user whose email is taken"""

    default_code = "USER_ALREADY_EXISTS"

    def __init__(self, email: str):
        super().__init__(f'User with email "{email}" already exists.')
        self.email = email


class UserNotFoundAfterUpdateError(ResourceNotFoundError):
    """The row vanished between the UPDATE and the re-read"""

    def __init__(self, user_id: str):
        super().__init__("User", user_id, message="User not found after update")
