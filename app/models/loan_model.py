# app/models/loan_model.py

from sqlalchemy import (
    Column,
    Integer,
    BigInteger,
    String,
    DateTime,
    ForeignKey,
    Index,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from app.models.wei_type import WeiAmount
from app.utils.database import Base

# ACTIVE -> FUNDED -> REPAID | LIQUIDATED
LOAN_ACTIVE = "ACTIVE"
LOAN_FUNDED = "FUNDED"
LOAN_REPAID = "REPAID"
LOAN_LIQUIDATED = "LIQUIDATED"

LOAN_STATUSES = (LOAN_ACTIVE, LOAN_FUNDED, LOAN_REPAID, LOAN_LIQUIDATED)
TERMINAL_STATUSES = (LOAN_REPAID, LOAN_LIQUIDATED)


class Loan(Base):
    __tablename__ = "loans"

    __table_args__ = (
        Index("ix_loans_status", "status"),
        Index("ix_loans_borrower_status", "borrower_id", "status"),
        Index("ix_loans_lender_status", "lender_id", "status"),
        Index("ix_loans_status_due", "status", "due_date"),
    )

    id = Column(Integer, primary_key=True, index=True)

    borrower_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    # NULL until funded; status is the single source of truth for the lifecycle
    lender_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=True, index=True)

    collateral_id = Column(Integer, ForeignKey("collaterals.id", ondelete="RESTRICT"), nullable=False, index=True)

    principal_wei = Column(WeiAmount, nullable=False)
    interest_rate_bps = Column(Integer, nullable=False)
    duration_seconds = Column(BigInteger, nullable=False)

    # audit snapshot at creation (principal * 10000 // collateral value)
    ltv_bps = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, server_default=LOAN_ACTIVE, default=LOAN_ACTIVE)

    due_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    funded_at = Column(DateTime, nullable=True)
    repaid_at = Column(DateTime, nullable=True)
    liquidated_at = Column(DateTime, nullable=True)

    # opaque keys from the chain adapter
    on_chain_offer_id = Column(String(100), unique=True, nullable=True)
    on_chain_loan_id = Column(String(100), nullable=True)

    offer_tx_hash = Column(String(66), nullable=True)
    funding_tx_hash = Column(String(66), nullable=True)
    repayment_tx_hash = Column(String(66), nullable=True)
    liquidation_tx_hash = Column(String(66), nullable=True)

    borrower = relationship("User", foreign_keys=[borrower_id], lazy="selectin")
    lender = relationship("User", foreign_keys=[lender_id], lazy="selectin")
    collateral = relationship("Collateral", foreign_keys=[collateral_id], lazy="selectin")

    transactions = relationship(
        "LoanTransaction",
        lazy="selectin",
        order_by="LoanTransaction.id",
        viewonly=True,
    )
