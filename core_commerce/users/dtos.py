# core_commerce/users/dtos.py
"""
Validated inputs for the user service
"""
from typing import Any, Dict, Optional

from pydantic import Field, field_validator

from .types import DomainModel


class CreateUserDTO(DomainModel):
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    email: str
    password: str = Field(min_length=8, description="Password must be at least 8 characters long.")

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        value = value.strip()
        local, _, domain = value.partition("@")
        if not local or "." not in domain or " " in value:
            raise ValueError("Invalid email address")
        return value


class UpdateUserDTO(DomainModel):
    """Partial update; only explicitly set fields are written"""

    first_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    phone_number: Optional[str] = None

    def to_fields(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class UpsertAddressDTO(DomainModel):
    street: str = Field(min_length=3)
    city: str = Field(min_length=2)
    state: str = Field(min_length=2)
    postal_code: str = Field(min_length=5)
    country: str = Field(default="USA", min_length=2)
    is_default: bool = False
    label: Optional[str] = None
