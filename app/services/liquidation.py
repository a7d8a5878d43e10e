"""Liquidation Monitor: hand an overdue loan's collateral to its lender.

Runs on demand only; ``find_overdue_loans`` lets an operator (or a cron job
outside this service) see which loans are eligible.
"""

import logging
from typing import Callable, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidState,
    NotFoundError,
    NotOverdue,
    ValidationError,
)
from app.models.loan_model import Loan, LOAN_FUNDED, LOAN_LIQUIDATED
from app.models.transaction_model import TX_LIQUIDATED
from app.services import identity, ledger_store
from app.utils.loan_calculations import utcnow

logger = logging.getLogger(__name__)


def liquidate_loan(
        db: Session,
        loan_id: int,
        caller_wallet: str,
        on_chain_tx_hash: str,
        now: Callable = utcnow,
) -> Tuple[Loan, bool]:
    tx_hash = (on_chain_tx_hash or "").strip()
    if not tx_hash:
        raise ValidationError("Transaction hash is required")
    caller = identity.require_address(caller_wallet, "lenderAddress")

    try:
        loan = ledger_store.lock_loan(db, loan_id)
        if not loan:
            raise NotFoundError("Loan not found")

        lender_wallet = loan.lender.wallet_address if loan.lender else None

        if (
            loan.status == LOAN_LIQUIDATED
            and loan.liquidation_tx_hash == tx_hash
            and lender_wallet == caller
        ):
            db.rollback()
            logger.info("Liquidation replay for loan %s (tx %s), no-op", loan_id, tx_hash)
            return loan, False

        if loan.status != LOAN_FUNDED:
            raise InvalidState("Only funded loans can be liquidated")

        ts = now()
        if loan.due_date is None or not ts > loan.due_date:
            raise NotOverdue("Loan is not yet overdue")

        if lender_wallet != caller:
            raise ForbiddenError("Only the lender can liquidate this loan")

        lender_id = loan.lender_id
        collateral_id = loan.collateral_id
        principal = loan.principal_wei

        moved = ledger_store.transition(
            db,
            loan_id,
            expected_status=LOAN_FUNDED,
            new_status=LOAN_LIQUIDATED,
            liquidated_at=ts,
            liquidation_tx_hash=tx_hash,
        )
        if not moved:
            raise InvalidState("Loan changed state while liquidating")

        ledger_store.release_collateral(db, collateral_id, new_owner_id=lender_id)

        ledger_store.record_event(
            db,
            loan_id=loan_id,
            kind=TX_LIQUIDATED,
            amount_wei=principal,
            on_chain_tx_hash=tx_hash,
            recorded_at=ts,
        )

        db.commit()

    except IntegrityError:
        db.rollback()
        # unique (kind, hash): this liquidation tx is already recorded on another loan
        raise ConflictError("Transaction hash already recorded")
    except Exception:
        db.rollback()
        raise

    loan = ledger_store.get_loan(db, loan_id)
    logger.info(
        "Loan %s liquidated: lender=%s collateral=%s tx=%s",
        loan_id, caller, collateral_id, tx_hash,
    )
    return loan, True


def find_overdue_loans(db: Session, now: Callable = utcnow) -> list[Loan]:
    return (
        db.query(Loan)
        .filter(Loan.status == LOAN_FUNDED, Loan.due_date < now())
        .order_by(Loan.due_date.asc(), Loan.id.asc())
        .all()
    )
