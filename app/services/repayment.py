"""Limited loan updates pushed by the external repayment notifier."""

import logging
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, InvalidState, NotFoundError, ValidationError
from app.models.loan_model import Loan, LOAN_FUNDED, LOAN_REPAID
from app.models.transaction_model import TX_REPAID
from app.services import ledger_store
from app.utils.loan_calculations import utcnow

logger = logging.getLogger(__name__)


def update_loan(
        db: Session,
        loan_id: Optional[int],
        status: Optional[str] = None,
        repayment_tx_hash: Optional[str] = None,
        on_chain_loan_id: Optional[str] = None,
        now: Callable = utcnow,
) -> Loan:
    if not loan_id:
        raise ValidationError("loanId is required")

    new_status = status.strip().upper() if status else None
    if new_status and new_status != LOAN_REPAID:
        raise ValidationError(f"Status cannot be set to {new_status} through this endpoint")
    tx_hash = (repayment_tx_hash or "").strip() or None
    if new_status == LOAN_REPAID and not tx_hash:
        raise ValidationError("repaymentTxHash is required to mark a loan repaid")
    if not new_status and not on_chain_loan_id:
        raise ValidationError("Nothing to update")

    try:
        loan = ledger_store.lock_loan(db, loan_id)
        if not loan:
            raise NotFoundError("Loan not found")

        if on_chain_loan_id:
            if loan.on_chain_loan_id and loan.on_chain_loan_id != on_chain_loan_id:
                raise ConflictError("Loan already linked to a different on-chain loan id")
            loan.on_chain_loan_id = on_chain_loan_id

        repaid_now = False
        if new_status == LOAN_REPAID:
            if loan.status == LOAN_REPAID and loan.repayment_tx_hash == tx_hash:
                pass  # replay
            elif loan.status != LOAN_FUNDED:
                raise InvalidState(f"Only funded loans can be repaid. Current status: {loan.status}")
            else:
                collateral_id = loan.collateral_id
                principal = loan.principal_wei
                ts = now()

                moved = ledger_store.transition(
                    db,
                    loan_id,
                    expected_status=LOAN_FUNDED,
                    new_status=LOAN_REPAID,
                    repaid_at=ts,
                    repayment_tx_hash=tx_hash,
                )
                if not moved:
                    raise InvalidState("Loan changed state while recording repayment")

                # NFT goes back to the borrower; owner stays unchanged
                ledger_store.release_collateral(db, collateral_id)

                ledger_store.record_event(
                    db,
                    loan_id=loan_id,
                    kind=TX_REPAID,
                    amount_wei=principal,
                    on_chain_tx_hash=tx_hash,
                    recorded_at=ts,
                )
                repaid_now = True

        db.commit()

    except IntegrityError:
        db.rollback()
        # unique (kind, hash): this repayment tx is already recorded on another loan
        raise ConflictError("Transaction hash already recorded")
    except Exception:
        db.rollback()
        raise

    loan = ledger_store.get_loan(db, loan_id)
    if repaid_now:
        logger.info("Loan %s repaid (tx %s)", loan_id, tx_hash)
    return loan
