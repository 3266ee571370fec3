"""Identity Model - Caller identity resolved once at the HTTP boundary."""

from enum import Enum

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Closed set of marketplace roles."""
    OWNER = "owner"
    WALKER = "walker"
    ADMIN = "admin"


class Identity(BaseModel):
    """Authenticated caller passed into every core operation."""
    user_id: str = Field(..., min_length=1)
    role: Role

    class Config:
        frozen = True

    @property
    def is_owner(self) -> bool:
        return self.role == Role.OWNER

    @property
    def is_walker(self) -> bool:
        return self.role == Role.WALKER
