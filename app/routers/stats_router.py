from decimal import Decimal

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.services import explore
from app.utils.database import get_db
from app.utils.loan_calculations import bps_to_percent
from app.schemas.loan_schema import LoanStatsOut

router = APIRouter(prefix="/stats", tags=["Stats"])


@router.get("", response_model=LoanStatsOut)
def platform_stats(db: Session = Depends(get_db)):
    s = explore.platform_stats(db)
    return LoanStatsOut(
        total_loans=s["total_loans"],
        total_loans_issued_wei=s["total_loans_issued_wei"],
        unique_borrowers=s["unique_borrowers"],
        locked_collaterals=s["locked_collaterals"],
        avg_interest_rate=bps_to_percent(s["avg_interest_rate_bps"]).quantize(Decimal("0.1")),
    )
