"""Shared read-modify-write primitives for the loan ledger.

Every state transition (offer, fund, repay, liquidate) goes through the helpers
here, so the locking and compare-and-swap rules live in exactly one place:

- ``lock_loan`` / ``lock_user`` read a row ``FOR UPDATE`` inside the caller's
  transaction (ignored by SQLite, which serializes writers itself)
- ``transition`` is the only code path that changes ``Loan.status``; it is a
  conditional ``UPDATE ... WHERE status = :expected`` and reports whether the
  row was actually moved
- ``record_event`` appends the audit row for a transition

None of these commit. The calling service owns the transaction boundary and
rolls back on any error.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.models.collateral_model import Collateral
from app.models.loan_model import Loan
from app.models.transaction_model import LoanTransaction
from app.models.user_model import User

logger = logging.getLogger(__name__)


def get_loan(db: Session, loan_id: int) -> Optional[Loan]:
    return db.query(Loan).filter(Loan.id == loan_id).first()


def lock_loan(db: Session, loan_id: int) -> Optional[Loan]:
    return (
        db.query(Loan)
        .filter(Loan.id == loan_id)
        .with_for_update(of=Loan)
        .populate_existing()
        .first()
    )


def lock_user(db: Session, user_id: int) -> User:
    return (
        db.query(User)
        .filter(User.id == user_id)
        .with_for_update(of=User)
        .populate_existing()
        .one()
    )


def find_loan_by_offer_id(db: Session, on_chain_offer_id: str) -> Optional[Loan]:
    return db.query(Loan).filter(Loan.on_chain_offer_id == on_chain_offer_id).first()


def find_locked_collateral(db: Session, asset_contract: str, token_id: str) -> Optional[Collateral]:
    return (
        db.query(Collateral)
        .filter(
            Collateral.asset_contract == asset_contract,
            Collateral.token_id == token_id,
            Collateral.is_locked.is_(True),
        )
        .first()
    )


def transition(db: Session, loan_id: int, expected_status: str, new_status: str, **values) -> bool:
    """
    Compare-and-swap on Loan.status.

    Returns False when the row was no longer in ``expected_status`` at write
    time (a concurrent writer won); the caller decides which error that is.
    """
    db.flush()
    values["status"] = new_status
    rowcount = (
        db.query(Loan)
        .filter(Loan.id == loan_id, Loan.status == expected_status)
        .update(values, synchronize_session=False)
    )
    moved = rowcount == 1
    if moved:
        db.expire_all()
    else:
        logger.info(
            "CAS miss on loan %s: expected %s -> %s", loan_id, expected_status, new_status
        )
    return moved


def release_collateral(db: Session, collateral_id: int, new_owner_id: Optional[int] = None) -> None:
    values = {"is_locked": False, "locked_in_loan_id": None}
    if new_owner_id is not None:
        values["owner_user_id"] = new_owner_id
    db.query(Collateral).filter(Collateral.id == collateral_id).update(values, synchronize_session=False)


def record_event(
        db: Session,
        loan_id: int,
        kind: str,
        amount_wei: int,
        on_chain_tx_hash: Optional[str],
        recorded_at: datetime,
) -> LoanTransaction:
    event = LoanTransaction(
        loan_id=loan_id,
        kind=kind,
        amount_wei=amount_wei,
        on_chain_tx_hash=on_chain_tx_hash,
        recorded_at=recorded_at,
    )
    db.add(event)
    db.flush()
    return event


def loan_events(db: Session, loan_id: int) -> list[LoanTransaction]:
    return (
        db.query(LoanTransaction)
        .filter(LoanTransaction.loan_id == loan_id)
        .order_by(LoanTransaction.id.asc())
        .all()
    )
