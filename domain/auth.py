"""Domain Entities - Auth"""
from pydantic import BaseModel, Field
from uuid import UUID, uuid4
from datetime import datetime, timezone
from typing import Optional

from domain.enums import Role


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    """User Entity"""
    user_id: UUID = Field(default_factory=uuid4)
    email: str
    name: str
    phone: Optional[str] = None
    address: Optional[str] = None
    role: Role = Role.CUSTOMER
    is_active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    class Config:
        from_attributes = True

    def is_guide(self) -> bool:
        return self.role == Role.GUIDE

    def toggle_active(self) -> None:
        self.is_active = not self.is_active
        self.updated_at = _utcnow()

    def touch(self) -> None:
        self.updated_at = _utcnow()


class UserInDB(User):
    """User with hashed password for DB storage"""
    hashed_password: str


class Principal(BaseModel):
    """The authenticated actor of a request"""
    user_id: UUID
    email: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def can_act_on(self, owner_id: UUID) -> bool:
        """Owner or admin"""
        return self.is_admin or self.user_id == owner_id

    class Config:
        frozen = True
