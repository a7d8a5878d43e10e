import logging
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.user_model import User
from app.utils.loan_calculations import normalize_address, utcnow

logger = logging.getLogger(__name__)


def require_address(address, field: str = "walletAddress") -> str:
    addr = normalize_address(address)
    if not addr:
        raise ValidationError(f"{field} must be a 0x-prefixed 40 hex character address")
    return addr


def find_by_wallet(db: Session, wallet_address) -> Optional[User]:
    addr = normalize_address(wallet_address)
    if not addr:
        return None
    return db.query(User).filter(User.wallet_address == addr).first()


def find_by_id(db: Session, user_id: int) -> Optional[User]:
    return db.get(User, user_id)


def resolve_user(db: Session, wallet_address, create: bool = True, username_prefix: str = "User") -> User:
    """
    Map a wallet to its User, creating one on first sight.

    Creation runs inside a SAVEPOINT: if a concurrent request inserted the same
    wallet first, the unique index rejects ours and the winner's row is used.
    Does not commit.
    """
    addr = require_address(wallet_address)

    user = db.query(User).filter(User.wallet_address == addr).first()
    if user:
        return user
    if not create:
        raise NotFoundError("User not found. Please register first.")

    try:
        with db.begin_nested():
            user = User(
                wallet_address=addr,
                username=f"{username_prefix}_{addr}",
                total_borrowed=0,
                total_lent=0,
                created_at=utcnow(),
            )
            db.add(user)
    except IntegrityError:
        user = db.query(User).filter(User.wallet_address == addr).first()
        if user is None:
            raise ConflictError(f"Could not create user for {addr}")
        return user

    logger.info("Created user %s for wallet %s", user.id, addr)
    return user


# =================================================
# 🔹 REGISTRATION
# =================================================
def register_user(db: Session, username: Optional[str], wallet_address: Optional[str]) -> User:
    username = (username or "").strip()
    if not username or not wallet_address:
        raise ValidationError("Username and wallet address are required.")
    addr = require_address(wallet_address)

    existing = (
        db.query(User)
        .filter(or_(User.username == username, User.wallet_address == addr))
        .first()
    )
    if existing:
        raise ConflictError("Username or wallet address already in use.")

    user = User(
        wallet_address=addr,
        username=username,
        total_borrowed=0,
        total_lent=0,
        created_at=utcnow(),
    )
    try:
        db.add(user)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Username or wallet address already in use.")
    except Exception:
        db.rollback()
        raise

    db.refresh(user)
    logger.info("Registered user %s (%s)", user.username, addr)
    return user


def check_wallet(db: Session, wallet_address) -> dict:
    if not wallet_address:
        raise ValidationError("walletAddress is required")
    user = find_by_wallet(db, wallet_address)
    return {"authenticated": user is not None, "user": user}
