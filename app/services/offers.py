"""Offer Factory: validate a loan request and lock its NFT collateral."""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core import config
from app.core.errors import CollateralAlreadyLocked, ValidationError
from app.models.collateral_model import Collateral
from app.models.loan_model import Loan, LOAN_ACTIVE
from app.models.transaction_model import TX_OFFER_CREATED
from app.services import identity, ledger_store
from app.utils.loan_calculations import (
    MAX_WEI,
    is_within_ltv,
    ltv_bps,
    max_principal_wei,
    normalize_address,
    parse_wei,
    utcnow,
)

logger = logging.getLogger(__name__)


@dataclass
class OfferRequest:
    borrower_wallet: str
    principal_wei: int
    interest_rate_bps: int
    duration_seconds: int
    asset_contract: str
    token_id: str
    collateral_value_wei: int
    on_chain_offer_id: Optional[str] = None
    tx_hash: Optional[str] = None


def _validate(req: OfferRequest) -> Tuple[str, str]:
    asset_contract = normalize_address(req.asset_contract)
    if not asset_contract:
        raise ValidationError("collateral assetContract must be a 0x-prefixed 40 hex character address")

    token_id = str(req.token_id).strip() if req.token_id is not None else ""
    try:
        token_id = str(parse_wei(token_id))
    except ValueError:
        raise ValidationError("collateral tokenId must be a non-negative integer up to uint256")

    if req.principal_wei <= 0:
        raise ValidationError("Loan amount must be greater than 0")
    if req.principal_wei > MAX_WEI:
        raise ValidationError("Loan amount exceeds uint256")
    if req.duration_seconds <= 0:
        raise ValidationError("Duration must be greater than 0")
    if req.duration_seconds > config.MAX_DURATION_SECONDS:
        raise ValidationError(
            f"Duration cannot exceed {config.MAX_DURATION_SECONDS} seconds"
        )
    if req.interest_rate_bps < 0:
        raise ValidationError("Interest rate cannot be negative")
    if req.collateral_value_wei <= 0:
        raise ValidationError("Collateral value must be greater than 0")
    if req.collateral_value_wei > MAX_WEI:
        raise ValidationError("Collateral value exceeds uint256")

    if not is_within_ltv(req.principal_wei, req.collateral_value_wei, config.MAX_LTV_PERCENT):
        max_wei = max_principal_wei(req.collateral_value_wei, config.MAX_LTV_PERCENT)
        raise ValidationError(
            f"Loan amount cannot exceed {config.MAX_LTV_PERCENT}% of collateral value. "
            f"Maximum loan amount: {max_wei} wei"
        )

    return asset_contract, token_id


def create_offer(
        db: Session,
        req: OfferRequest,
        now: Callable = utcnow,
) -> Tuple[Loan, bool]:
    """
    Create Loan + Collateral lock + OFFER_CREATED event in one transaction.

    Returns ``(loan, created)``; ``created`` is False when ``on_chain_offer_id``
    was already recorded and the existing loan is returned instead.
    """
    if req.on_chain_offer_id:
        existing = ledger_store.find_loan_by_offer_id(db, req.on_chain_offer_id)
        if existing:
            logger.info("Offer %s already recorded as loan %s", req.on_chain_offer_id, existing.id)
            return existing, False

    asset_contract, token_id = _validate(req)

    try:
        borrower = identity.resolve_user(
            db,
            req.borrower_wallet,
            create=not config.REQUIRE_BORROWER_REGISTRATION,
            username_prefix="Borrower",
        )

        if ledger_store.find_locked_collateral(db, asset_contract, token_id):
            raise CollateralAlreadyLocked(
                "This NFT is already used as collateral in another active loan"
            )

        ts = now()

        collateral = Collateral(
            asset_contract=asset_contract,
            token_id=token_id,
            owner_user_id=borrower.id,
            estimated_value_wei=req.collateral_value_wei,
            last_valuation_at=ts,
            is_locked=True,
        )
        db.add(collateral)
        db.flush()  # ✅ raises IntegrityError if a racing request locked it first

        loan = Loan(
            borrower_id=borrower.id,
            lender_id=None,
            collateral_id=collateral.id,
            principal_wei=req.principal_wei,
            interest_rate_bps=req.interest_rate_bps,
            duration_seconds=req.duration_seconds,
            ltv_bps=ltv_bps(req.principal_wei, req.collateral_value_wei),
            status=LOAN_ACTIVE,
            created_at=ts,
            on_chain_offer_id=req.on_chain_offer_id or None,
            offer_tx_hash=req.tx_hash or None,
        )
        db.add(loan)
        db.flush()

        collateral.locked_in_loan_id = loan.id

        ledger_store.record_event(
            db,
            loan_id=loan.id,
            kind=TX_OFFER_CREATED,
            amount_wei=req.principal_wei,
            on_chain_tx_hash=req.tx_hash or None,
            recorded_at=ts,
        )

        db.commit()

    except IntegrityError as e:
        db.rollback()

        msg = str(getattr(e, "orig", None) or e)

        if req.on_chain_offer_id:
            existing = ledger_store.find_loan_by_offer_id(db, req.on_chain_offer_id)
            if existing:
                return existing, False

        if "ux_collateral_one_lock_per_token" in msg or "collaterals" in msg:
            raise CollateralAlreadyLocked(
                "This NFT is already used as collateral in another active loan"
            )
        raise ValidationError("Unable to create loan due to database constraints.")
    except Exception:
        db.rollback()
        raise

    db.refresh(loan)
    logger.info(
        "Loan %s offered: borrower=%s principal=%s collateral=%s#%s offer_id=%s",
        loan.id, borrower.wallet_address, loan.principal_wei,
        asset_contract, token_id, loan.on_chain_offer_id,
    )
    return loan, True
