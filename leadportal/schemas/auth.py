from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from leadportal.core.enums import UserRole


class LoginIn(BaseModel):
    email: str
    password: str


class TokenOut(BaseModel):
    token: str
    token_type: str = "bearer"


class Identity(BaseModel):
    id: int
    name: str
    email: str
    role: UserRole
    affiliate_id: Optional[int] = None


class UserOut(BaseModel):
    id: int
    name: str
    email: str
    role: UserRole
    affiliate_id: Optional[int] = None
    created_at: datetime
    last_login: Optional[datetime] = None
