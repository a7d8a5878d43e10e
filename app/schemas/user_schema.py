from datetime import datetime
from typing import Optional

from app.schemas.base import CamelModel, WeiStr


class RegisterRequest(CamelModel):
    username: Optional[str] = None
    wallet_address: Optional[str] = None


class UserSummaryOut(CamelModel):
    id: int
    username: str
    wallet_address: str
    reputation: int


class UserOut(UserSummaryOut):
    total_borrowed: WeiStr
    total_lent: WeiStr
    created_at: Optional[datetime] = None


class AuthCheckOut(CamelModel):
    authenticated: bool
    user: Optional[UserSummaryOut] = None
