"""Admin login schemas."""
from typing import Optional

from slugshare.schemas.base import CamelModel


class LoginRequest(CamelModel):
    username: Optional[str] = None
    password: Optional[str] = None


class LoginResponse(CamelModel):
    success: bool = True
    token: str
    expires_at: int
