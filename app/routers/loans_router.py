from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session
from starlette import status

from app.core.errors import NotFoundError, ValidationError
from app.models.loan_model import Loan
from app.services import explore, funding, ledger_store, liquidation, offers, repayment
from app.services.explore import ExploreFilters
from app.utils.database import get_db
from app.utils.loan_calculations import parse_wei, utcnow

from app.schemas.loan_schema import (
    LoanCreate,
    LoanOut,
    FundRequest,
    LiquidateRequest,
    LoanPatch,
    TransactionOut,
    ExploreLoanOut,
    ExploreOut,
    OpenOffersOut,
    UserLoansOut,
)

router = APIRouter(prefix="/loans", tags=["Loans"])


# -------------------------------------------------
# Helpers
# -------------------------------------------------
def get_clock():
    """Overridable source of "now" for the transition endpoints."""
    return utcnow


def loan_out(loan: Loan) -> LoanOut:
    return LoanOut.model_validate(loan)


def _parse_wei(raw: Optional[str], name: str) -> Optional[int]:
    if raw is None or raw.strip() == "":
        return None
    try:
        return parse_wei(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a non-negative integer amount in wei")


# =================================================
# 🔹 STATIC ROUTES (ALWAYS FIRST)
# =================================================
@router.get("", response_model=UserLoansOut)
def loans_for_user(
        wallet_address: Optional[str] = Query(None, alias="walletAddress"),
        user_id: Optional[int] = Query(None, alias="userId"),
        db: Session = Depends(get_db),
):
    result = explore.list_user_loans(db, wallet_address=wallet_address, user_id=user_id)
    return UserLoansOut(
        all_loans=[loan_out(l) for l in result["all"]],
        borrowed_loans=[loan_out(l) for l in result["borrowed"]],
        lent_loans=[loan_out(l) for l in result["lent"]],
        total_borrowed=result["total_borrowed"],
        total_lent=result["total_lent"],
    )


@router.get("/explore", response_model=ExploreOut)
def explore_loans(
        status_: Optional[str] = Query(None, alias="status"),
        min_interest_rate: Optional[int] = Query(None, alias="minInterestRate"),
        max_interest_rate: Optional[int] = Query(None, alias="maxInterestRate"),
        min_amount: Optional[str] = Query(None, alias="minAmount"),
        max_amount: Optional[str] = Query(None, alias="maxAmount"),
        exclude_wallet: Optional[str] = Query(None, alias="excludeWallet"),
        user_id: Optional[int] = Query(None, alias="userId"),
        sort_by: str = Query("createdAt", alias="sortBy"),
        sort_order: str = Query("desc", alias="sortOrder"),
        db: Session = Depends(get_db),
):
    filters = ExploreFilters(
        status=status_,
        min_interest_rate=min_interest_rate,
        max_interest_rate=max_interest_rate,
        min_amount=_parse_wei(min_amount, "minAmount"),
        max_amount=_parse_wei(max_amount, "maxAmount"),
        exclude_wallet=exclude_wallet,
        user_id=user_id,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    rows = explore.explore_loans(db, filters)

    loans = []
    for r in rows:
        base = loan_out(r["loan"]).model_dump()
        loans.append(
            ExploreLoanOut(
                **base,
                ltv_ratio=r["ltv_ratio"],
                duration_days=r["duration_days"],
                projected_interest_wei=r["projected_interest_wei"],
                total_return_wei=r["total_return_wei"],
                is_own_loan=r["is_own_loan"],
            )
        )
    return ExploreOut(loans=loans, total=len(loans))


@router.get("/overdue", response_model=list[LoanOut])
def overdue_loans(db: Session = Depends(get_db), clock=Depends(get_clock)):
    return [loan_out(l) for l in liquidation.find_overdue_loans(db, now=clock)]


# =================================================
# 🔹 OFFER CREATION
# =================================================
@router.post("", response_model=LoanOut, status_code=status.HTTP_201_CREATED)
def create_loan(
        payload: LoanCreate,
        response: Response,
        db: Session = Depends(get_db),
        clock=Depends(get_clock),
):
    loan, created = offers.create_offer(
        db,
        offers.OfferRequest(
            borrower_wallet=payload.wallet_address,
            principal_wei=payload.principal_wei,
            interest_rate_bps=payload.interest_rate_bps,
            duration_seconds=payload.duration_seconds,
            asset_contract=payload.asset_contract,
            token_id=payload.token_id,
            collateral_value_wei=payload.collateral_value_wei,
            on_chain_offer_id=payload.on_chain_offer_id,
            tx_hash=payload.tx_hash,
        ),
        now=clock,
    )
    if not created:
        response.status_code = status.HTTP_200_OK
    return loan_out(loan)


# =================================================
# 🔹 REPAYMENT NOTIFIER (limited update)
# =================================================
@router.patch("", response_model=LoanOut)
def patch_loan(
        payload: LoanPatch,
        db: Session = Depends(get_db),
        clock=Depends(get_clock),
):
    loan = repayment.update_loan(
        db,
        loan_id=payload.loan_id,
        status=payload.status,
        repayment_tx_hash=payload.repayment_tx_hash,
        on_chain_loan_id=payload.on_chain_loan_id,
        now=clock,
    )
    return loan_out(loan)


# =================================================
# 🔹 FUNDING
# =================================================
@router.get("/fund", response_model=OpenOffersOut)
def open_offers(
        exclude_address: Optional[str] = Query(None, alias="excludeAddress"),
        db: Session = Depends(get_db),
):
    loans = [loan_out(l) for l in explore.list_open_offers(db, exclude_wallet=exclude_address)]
    return OpenOffersOut(loans=loans, count=len(loans))


@router.post("/fund", response_model=LoanOut, status_code=status.HTTP_201_CREATED)
def fund_loan(
        payload: FundRequest,
        response: Response,
        db: Session = Depends(get_db),
        clock=Depends(get_clock),
):
    loan, funded_now = funding.fund_loan(
        db,
        loan_id=payload.loan_id,
        lender_wallet=payload.lender_address,
        on_chain_tx_hash=payload.tx_hash,
        on_chain_loan_id=payload.on_chain_loan_id,
        now=clock,
    )
    if not funded_now:
        response.status_code = status.HTTP_200_OK
    return loan_out(loan)


# =================================================
# 🔹 LIQUIDATION
# =================================================
@router.post("/liquidate", response_model=LoanOut)
def liquidate_loan(
        payload: LiquidateRequest,
        db: Session = Depends(get_db),
        clock=Depends(get_clock),
):
    loan, _ = liquidation.liquidate_loan(
        db,
        loan_id=payload.loan_id,
        caller_wallet=payload.lender_address,
        on_chain_tx_hash=payload.tx_hash,
        now=clock,
    )
    return loan_out(loan)


# =================================================
# 🔹 DYNAMIC ROUTES (LAST)
# =================================================
@router.get("/{loan_id}", response_model=LoanOut)
def get_loan(loan_id: int, db: Session = Depends(get_db)):
    loan = ledger_store.get_loan(db, loan_id)
    if not loan:
        raise NotFoundError("Loan not found")
    return loan_out(loan)


@router.get("/{loan_id}/transactions", response_model=list[TransactionOut])
def loan_transactions(loan_id: int, db: Session = Depends(get_db)):
    if not ledger_store.get_loan(db, loan_id):
        raise NotFoundError("Loan not found")
    return [TransactionOut.model_validate(t) for t in ledger_store.loan_events(db, loan_id)]
