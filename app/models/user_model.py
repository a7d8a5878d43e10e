from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func

from app.models.wei_type import WeiAmount
from app.utils.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    # always lower-case, see normalize_address()
    wallet_address = Column(String(42), unique=True, nullable=False, index=True)
    username = Column(String(100), unique=True, nullable=False)

    reputation = Column(Integer, nullable=False, server_default="0", default=0)

    total_borrowed = Column(WeiAmount, nullable=False, default=0)
    total_lent = Column(WeiAmount, nullable=False, default=0)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
