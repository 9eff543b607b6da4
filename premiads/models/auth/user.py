from pydantic import BaseModel, Field
from typing import Optional
from enum import Enum


class UserRole(str, Enum):
    """Platform roles supplied by the identity provider"""
    PARTICIPANT = "participant"
    ADVERTISER = "advertiser"
    ADMIN = "admin"


class Caller(BaseModel):
    """Identity of whoever is invoking a workflow operation"""
    user_id: str = Field(..., min_length=1)
    role: UserRole = UserRole.PARTICIPANT
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_advertiser(self) -> bool:
        return self.role == UserRole.ADVERTISER


class TokenData(BaseModel):
    """Token payload data"""
    user_id: Optional[str] = None
    role: Optional[UserRole] = None
    email: Optional[str] = None
