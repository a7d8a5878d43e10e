"""Read-only queries over the ledger for discovery and account pages.

Derived fields (LTV, projected return) are computed here from stored integers
on every read and never written back.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, aliased

from app.core.errors import NotFoundError, ValidationError
from app.models.collateral_model import Collateral
from app.models.loan_model import Loan, LOAN_ACTIVE, LOAN_FUNDED, LOAN_REPAID, LOAN_LIQUIDATED, LOAN_STATUSES
from app.models.user_model import User
from app.services import identity
from app.utils.loan_calculations import (
    duration_days,
    ltv_bps,
    ltv_ratio,
    projected_interest_wei,
)

SORT_COLUMNS = {
    "createdAt": Loan.created_at,
    "interestRate": Loan.interest_rate_bps,
    "amount": Loan.principal_wei,
    "duration": Loan.duration_seconds,
}

ISSUED_STATUSES = (LOAN_FUNDED, LOAN_REPAID, LOAN_LIQUIDATED)


@dataclass
class ExploreFilters:
    status: Optional[str] = LOAN_ACTIVE
    min_interest_rate: Optional[int] = None
    max_interest_rate: Optional[int] = None
    min_amount: Optional[int] = None
    max_amount: Optional[int] = None
    exclude_wallet: Optional[str] = None
    user_id: Optional[int] = None
    sort_by: str = "createdAt"
    sort_order: str = "desc"


def annotate(loan: Loan, current_user_id: Optional[int] = None) -> dict:
    principal = loan.principal_wei
    collateral_value = loan.collateral.estimated_value_wei if loan.collateral else 0
    interest = projected_interest_wei(principal, loan.interest_rate_bps, loan.duration_seconds)
    return {
        "loan": loan,
        "ltv_bps": ltv_bps(principal, collateral_value),
        "ltv_ratio": ltv_ratio(principal, collateral_value),
        "duration_days": duration_days(loan.duration_seconds),
        "projected_interest_wei": interest,
        "total_return_wei": principal + interest,
        "is_own_loan": current_user_id is not None and loan.borrower_id == current_user_id,
    }


def _exclude_borrower(q, exclude_wallet: Optional[str], field: str):
    if not exclude_wallet:
        return q
    excluded = identity.require_address(exclude_wallet, field)
    borrower = aliased(User)
    return q.join(borrower, Loan.borrower_id == borrower.id).filter(
        borrower.wallet_address != excluded
    )


def explore_loans(db: Session, filters: ExploreFilters) -> list[dict]:
    status = (filters.status or LOAN_ACTIVE).upper()
    if status not in LOAN_STATUSES:
        raise ValidationError(f"Unknown status: {filters.status}")

    for lo, hi, name in (
        (filters.min_interest_rate, filters.max_interest_rate, "interest rate"),
        (filters.min_amount, filters.max_amount, "amount"),
    ):
        if lo is not None and lo < 0 or hi is not None and hi < 0:
            raise ValidationError(f"{name} filters cannot be negative")
        if lo is not None and hi is not None and lo > hi:
            raise ValidationError(f"min {name} is greater than max {name}")

    q = db.query(Loan).filter(Loan.status == status)

    if filters.min_interest_rate is not None:
        q = q.filter(Loan.interest_rate_bps >= filters.min_interest_rate)
    if filters.max_interest_rate is not None:
        q = q.filter(Loan.interest_rate_bps <= filters.max_interest_rate)
    if filters.min_amount is not None:
        q = q.filter(Loan.principal_wei >= filters.min_amount)
    if filters.max_amount is not None:
        q = q.filter(Loan.principal_wei <= filters.max_amount)

    q = _exclude_borrower(q, filters.exclude_wallet, "excludeWallet")

    col = SORT_COLUMNS.get(filters.sort_by, Loan.created_at)
    if (filters.sort_order or "").lower() == "asc":
        q = q.order_by(col.asc(), Loan.id.asc())
    else:
        q = q.order_by(col.desc(), Loan.id.desc())

    return [annotate(loan, filters.user_id) for loan in q.all()]


def list_open_offers(db: Session, exclude_wallet: Optional[str] = None) -> list[Loan]:
    q = db.query(Loan).filter(Loan.status == LOAN_ACTIVE, Loan.lender_id.is_(None))
    q = _exclude_borrower(q, exclude_wallet, "excludeAddress")
    return q.order_by(Loan.created_at.desc(), Loan.id.desc()).all()


def list_user_loans(db: Session, wallet_address: Optional[str] = None, user_id: Optional[int] = None) -> dict:
    if not wallet_address and user_id is None:
        raise ValidationError("walletAddress or userId is required")

    if wallet_address:
        user = identity.find_by_wallet(db, wallet_address)
    else:
        user = identity.find_by_id(db, user_id)
    if not user:
        raise NotFoundError("User not found")

    rows = (
        db.query(Loan)
        .filter(or_(Loan.borrower_id == user.id, Loan.lender_id == user.id))
        .order_by(Loan.created_at.desc(), Loan.id.desc())
        .all()
    )

    borrowed = [l for l in rows if l.borrower_id == user.id]
    lent = [l for l in rows if l.lender_id == user.id]

    return {
        "user": user,
        "all": rows,
        "borrowed": borrowed,
        "lent": lent,
        "total_borrowed": len(borrowed),
        "total_lent": len(lent),
    }


def platform_stats(db: Session) -> dict:
    total_loans = db.query(func.count(Loan.id)).scalar()

    # Wei is stored as text, so sum in Python to stay exact
    issued = db.query(Loan.principal_wei).filter(Loan.status.in_(ISSUED_STATUSES)).all()

    unique_borrowers = db.query(func.count(func.distinct(Loan.borrower_id))).scalar()

    locked = db.query(func.count(Collateral.id)).filter(Collateral.is_locked.is_(True)).scalar()

    rate_sum, rate_count = db.query(
        func.coalesce(func.sum(Loan.interest_rate_bps), 0), func.count(Loan.id)
    ).one()

    return {
        "total_loans": total_loans,
        "total_loans_issued_wei": sum((row.principal_wei for row in issued), 0),
        "unique_borrowers": unique_borrowers,
        "locked_collaterals": locked,
        "avg_interest_rate_bps": int(rate_sum) // rate_count if rate_count else 0,
    }
