from enum import Enum
from pydantic import BaseModel
from typing import Optional

class UserRole(str, Enum):
    MEMBER = "member"
    STAFF = "staff"
    ADMIN = "admin"

class AuthUser(BaseModel):
    id: str  # member id for members, staff id otherwise
    email: Optional[str] = None
    name: Optional[str] = None
    role: UserRole = UserRole.MEMBER

    @property
    def is_staff(self) -> bool:
        """Staff and admins act on behalf of any member"""
        return self.role in (UserRole.STAFF, UserRole.ADMIN)

class TokenData(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: UserRole = UserRole.MEMBER
    exp: Optional[float] = None
