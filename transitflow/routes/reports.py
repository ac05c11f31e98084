from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..auth.session import SessionContext, get_session_context
from ..db import get_db
from ..services import reports


router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/dashboard")
def get_dashboard(db: Session = Depends(get_db), ctx: SessionContext = Depends(get_session_context)):
    return reports.dashboard(db)


@router.get("/profitability")
def get_profitability(
    period: str = Query(..., description="YYYY-MM"),
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    """Profit per BL (allocated amount minus expenses) for BLs created in the period"""
    try:
        rows = reports.profitability(db, period)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"period": period, "results": rows}
