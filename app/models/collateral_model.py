# app/models/collateral_model.py
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    text,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from app.models.wei_type import WeiAmount
from app.utils.database import Base


class Collateral(Base):
    __tablename__ = "collaterals"

    __table_args__ = (
        # one live lock per NFT; racing inserts fail here
        Index(
            "ux_collateral_one_lock_per_token",
            "asset_contract",
            "token_id",
            unique=True,
            postgresql_where=text("is_locked"),
            sqlite_where=text("is_locked = 1"),
        ),
        Index("ix_collaterals_token", "asset_contract", "token_id"),
    )

    id = Column(Integer, primary_key=True, index=True)

    asset_contract = Column(String(42), nullable=False)
    token_id = Column(String(78), nullable=False)

    owner_user_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)

    estimated_value_wei = Column(WeiAmount, nullable=False)
    last_valuation_at = Column(DateTime, server_default=func.now(), nullable=True)

    is_locked = Column(Boolean, nullable=False, default=True)
    # plain column, not a FK: loans -> collaterals already references this table
    locked_in_loan_id = Column(Integer, nullable=True)

    owner = relationship("User", lazy="selectin")
