# core_commerce/users/types.py
"""
User domain entities
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class UserRole(str, Enum):
    CUSTOMER = "CUSTOMER"
    VENDOR = "VENDOR"
    ADMIN = "ADMIN"


class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    DEACTIVATED = "DEACTIVATED"
    SUSPENDED = "SUSPENDED"


class DomainModel(BaseModel):
    """snake_case attributes, camelCase on the wire"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Address(DomainModel):
    id: str
    user_id: str
    street: str
    city: str
    state: str
    postal_code: str
    country: str
    is_default: bool = False
    label: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class User(DomainModel):
    """
    Storage assigns ``id`` and the timestamps; ``email`` is unique.

    ``addresses`` is never loaded by the repository and stays empty.
    """

    id: str
    first_name: str
    last_name: str
    email: str
    phone_number: Optional[str] = None
    role: UserRole = UserRole.CUSTOMER
    status: UserStatus = UserStatus.ACTIVE
    addresses: List[Address] = Field(default_factory=list)
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
