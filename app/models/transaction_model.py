from sqlalchemy import (
    Column, Integer, BigInteger, String, DateTime, ForeignKey, UniqueConstraint
)
from sqlalchemy.sql import func

from app.models.wei_type import WeiAmount
from app.utils.database import Base

TX_OFFER_CREATED = "OFFER_CREATED"
TX_FUNDED = "FUNDED"
TX_REPAID = "REPAID"
TX_LIQUIDATED = "LIQUIDATED"

TX_KINDS = (TX_OFFER_CREATED, TX_FUNDED, TX_REPAID, TX_LIQUIDATED)


class LoanTransaction(Base):
    """Append-only event row, one per successful state transition."""

    __tablename__ = "loan_transactions"

    __table_args__ = (
        UniqueConstraint("loan_id", "kind", name="ux_loan_tx_one_per_kind"),
        UniqueConstraint("kind", "on_chain_tx_hash", name="ux_loan_tx_kind_hash"),
    )

    id = Column(Integer, primary_key=True, index=True)
    loan_id = Column(Integer, ForeignKey("loans.id", ondelete="RESTRICT"), nullable=False, index=True)

    kind = Column(String(30), nullable=False)  # OFFER_CREATED/FUNDED/REPAID/LIQUIDATED
    amount_wei = Column(WeiAmount, nullable=False)

    on_chain_tx_hash = Column(String(66), nullable=True)
    # filled in later by chain sync
    block_number = Column(BigInteger, nullable=True)

    recorded_at = Column(DateTime, server_default=func.now(), nullable=False)

