"""Funding Coordinator: match one lender to one open offer, exactly once."""

import logging
from datetime import timedelta
from typing import Callable, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import (
    AlreadyFunded,
    InvalidState,
    NotFoundError,
    SelfFundingForbidden,
    ValidationError,
)
from app.models.loan_model import Loan, LOAN_ACTIVE, LOAN_FUNDED
from app.models.transaction_model import TX_FUNDED
from app.services import identity, ledger_store
from app.utils.loan_calculations import utcnow

logger = logging.getLogger(__name__)


def _is_replay(loan: Loan, lender_wallet: str, tx_hash: str) -> bool:
    return (
        loan.status == LOAN_FUNDED
        and loan.funding_tx_hash == tx_hash
        and loan.lender is not None
        and loan.lender.wallet_address == lender_wallet
    )


def fund_loan(
        db: Session,
        loan_id: int,
        lender_wallet: str,
        on_chain_tx_hash: str,
        on_chain_loan_id: Optional[str] = None,
        now: Callable = utcnow,
) -> Tuple[Loan, bool]:
    """
    ACTIVE -> FUNDED.

    Returns ``(loan, funded_now)``; ``funded_now`` is False for an idempotent
    replay of an already-recorded funding with the same tx hash.
    """
    tx_hash = (on_chain_tx_hash or "").strip()
    if not tx_hash:
        raise ValidationError("Transaction hash is required")
    lender_addr = identity.require_address(lender_wallet, "lenderAddress")

    try:
        loan = ledger_store.lock_loan(db, loan_id)
        if not loan:
            raise NotFoundError("Loan not found")

        if _is_replay(loan, lender_addr, tx_hash):
            db.rollback()
            logger.info("Funding replay for loan %s (tx %s), no-op", loan_id, tx_hash)
            return loan, False

        if loan.borrower.wallet_address == lender_addr:
            raise SelfFundingForbidden("Borrower cannot fund their own loan")

        if loan.status == LOAN_FUNDED:
            raise AlreadyFunded("Loan has already been funded")
        if loan.status != LOAN_ACTIVE:
            raise InvalidState(f"Loan is not active. Current status: {loan.status}")

        lender = identity.resolve_user(db, lender_addr, create=True, username_prefix="Lender")
        lender_id = lender.id
        borrower_id = loan.borrower_id
        principal = loan.principal_wei

        ts = now()
        moved = ledger_store.transition(
            db,
            loan_id,
            expected_status=LOAN_ACTIVE,
            new_status=LOAN_FUNDED,
            lender_id=lender_id,
            funded_at=ts,
            due_date=ts + timedelta(seconds=loan.duration_seconds),
            funding_tx_hash=tx_hash,
            on_chain_loan_id=on_chain_loan_id or loan.on_chain_loan_id,
        )
        if not moved:
            raise AlreadyFunded("Loan was funded by another lender")

        lender = ledger_store.lock_user(db, lender_id)
        lender.total_lent = lender.total_lent + principal

        borrower = ledger_store.lock_user(db, borrower_id)
        borrower.total_borrowed = borrower.total_borrowed + principal

        ledger_store.record_event(
            db,
            loan_id=loan_id,
            kind=TX_FUNDED,
            amount_wei=principal,
            on_chain_tx_hash=tx_hash,
            recorded_at=ts,
        )

        db.commit()

    except IntegrityError:
        db.rollback()
        # unique (loan_id, kind) / (kind, hash): someone else recorded this funding
        raise AlreadyFunded("Funding for this loan or transaction was already recorded")
    except Exception:
        db.rollback()
        raise

    loan = ledger_store.get_loan(db, loan_id)
    logger.info(
        "Loan %s funded: lender=%s principal=%s due=%s tx=%s",
        loan_id, lender_addr, principal, loan.due_date, tx_hash,
    )
    return loan, True
