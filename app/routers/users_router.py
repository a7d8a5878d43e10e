from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from starlette import status

from app.services import identity
from app.utils.database import get_db
from app.schemas.user_schema import RegisterRequest, UserOut, AuthCheckOut, UserSummaryOut

router = APIRouter(tags=["Users"])


# --------------------------------------
# REGISTER (wallet address == identity)
# --------------------------------------
@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    user = identity.register_user(db, payload.username, payload.wallet_address)
    return UserOut.model_validate(user)


# --------------------------------------
# WALLET CHECK
# --------------------------------------
@router.get("/auth/check", response_model=AuthCheckOut)
def auth_check(
    wallet_address: Optional[str] = Query(None, alias="walletAddress"),
    db: Session = Depends(get_db),
):
    result = identity.check_wallet(db, wallet_address)
    user = result["user"]
    return AuthCheckOut(
        authenticated=result["authenticated"],
        user=UserSummaryOut.model_validate(user) if user else None,
    )
