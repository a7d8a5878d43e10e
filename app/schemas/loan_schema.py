from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from pydantic import Field, field_validator

from app.schemas.base import CamelModel, WeiStr
from app.schemas.user_schema import UserSummaryOut


def _blank_to_none(v):
    if v is None:
        return None
    v = str(v).strip()
    return v or None


# -------------------------------------------------
# Requests
# -------------------------------------------------
class LoanCreate(CamelModel):
    wallet_address: str
    principal_wei: WeiStr
    interest_rate_bps: int
    duration_seconds: int

    asset_contract: str
    token_id: str
    collateral_value_wei: WeiStr

    on_chain_offer_id: Optional[str] = None
    tx_hash: Optional[str] = None

    @field_validator("token_id", mode="before")
    def token_id_to_str(cls, v):
        return str(v) if isinstance(v, int) else v

    @field_validator("on_chain_offer_id", "tx_hash", mode="before")
    def empty_to_none(cls, v):
        if isinstance(v, int):
            v = str(v)
        return _blank_to_none(v)


class FundRequest(CamelModel):
    loan_id: int
    lender_address: str
    tx_hash: str
    on_chain_loan_id: Optional[str] = None

    @field_validator("on_chain_loan_id", mode="before")
    def empty_to_none(cls, v):
        if isinstance(v, int):
            v = str(v)
        return _blank_to_none(v)


class LiquidateRequest(CamelModel):
    loan_id: int
    lender_address: str
    tx_hash: str


class LoanPatch(CamelModel):
    loan_id: Optional[int] = None
    status: Optional[str] = None
    repayment_tx_hash: Optional[str] = None
    on_chain_loan_id: Optional[str] = None

    @field_validator("status", "repayment_tx_hash", "on_chain_loan_id", mode="before")
    def empty_to_none(cls, v):
        if isinstance(v, int):
            v = str(v)
        return _blank_to_none(v)


# -------------------------------------------------
# Responses
# -------------------------------------------------
class CollateralOut(CamelModel):
    id: int
    asset_contract: str
    token_id: str
    owner_user_id: int
    estimated_value_wei: WeiStr
    is_locked: bool
    locked_in_loan_id: Optional[int] = None


class LoanOut(CamelModel):
    id: int
    borrower_id: int
    lender_id: Optional[int] = None
    borrower: UserSummaryOut
    lender: Optional[UserSummaryOut] = None

    principal_wei: WeiStr
    interest_rate_bps: int
    duration_seconds: int
    ltv_bps: int
    status: str

    collateral: CollateralOut

    due_date: Optional[datetime] = None
    created_at: datetime
    funded_at: Optional[datetime] = None
    repaid_at: Optional[datetime] = None
    liquidated_at: Optional[datetime] = None

    on_chain_offer_id: Optional[str] = None
    on_chain_loan_id: Optional[str] = None
    offer_tx_hash: Optional[str] = None
    funding_tx_hash: Optional[str] = None
    repayment_tx_hash: Optional[str] = None
    liquidation_tx_hash: Optional[str] = None


class TransactionOut(CamelModel):
    id: int
    loan_id: int
    kind: str
    amount_wei: WeiStr
    on_chain_tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    recorded_at: datetime


class ExploreLoanOut(LoanOut):
    ltv_ratio: Decimal
    duration_days: Decimal
    projected_interest_wei: WeiStr
    total_return_wei: WeiStr
    is_own_loan: bool = False


class ExploreOut(CamelModel):
    loans: List[ExploreLoanOut]
    total: int


class OpenOffersOut(CamelModel):
    loans: List[LoanOut]
    count: int


class UserLoansOut(CamelModel):
    all_loans: List[LoanOut]
    borrowed_loans: List[LoanOut]
    lent_loans: List[LoanOut]
    total_borrowed: int
    total_lent: int


class LoanStatsOut(CamelModel):
    total_loans: int = 0
    total_loans_issued_wei: WeiStr = 0
    unique_borrowers: int = 0
    locked_collaterals: int = 0
    avg_interest_rate: Decimal = Field(default=Decimal("0.0"))
