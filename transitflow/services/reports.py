"""BL balances, monthly profitability and dashboard totals."""
import re
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.models import BillOfLading, Client, Expense


PERIOD_PATTERN = re.compile(r"(\d{4})-(0[1-9]|1[0-2])")


def _utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def parse_period(period: str) -> Tuple[datetime, datetime]:
    """'YYYY-MM' -> [first instant of the month, first instant of the next month)."""
    match = PERIOD_PATTERN.fullmatch(period or "")
    if not match:
        raise ValueError("period must be formatted YYYY-MM")
    year, month = int(match.group(1)), int(match.group(2))
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    end = datetime(year + 1, 1, 1, tzinfo=timezone.utc) if month == 12 else datetime(year, month + 1, 1, tzinfo=timezone.utc)
    return start, end


def expense_totals(db: Session, bl_ids: Optional[List[str]] = None) -> Dict[str, Tuple[float, int]]:
    """bl_id -> (sum of amounts, number of expenses)"""
    query = db.query(Expense.bl_id, func.coalesce(func.sum(Expense.amount), 0.0), func.count(Expense.id))
    if bl_ids is not None:
        if not bl_ids:
            return {}
        query = query.filter(Expense.bl_id.in_(bl_ids))
    rows = query.group_by(Expense.bl_id).all()
    return {bl_id: (float(total or 0.0), int(count)) for bl_id, total, count in rows}


def bl_balance(db: Session, bl: BillOfLading) -> dict:
    total, count = expense_totals(db, [bl.id]).get(bl.id, (0.0, 0))
    allocated = float(bl.allocated_amount or 0.0)
    return {
        "bl_id": bl.id,
        "bl_number": bl.bl_number,
        "allocated_amount": allocated,
        "total_expenses": total,
        "balance": allocated - total,
        "expense_count": count,
    }


def profitability(db: Session, period: str) -> List[dict]:
    """Per-BL profit for BLs created during `period`, newest first."""
    start, end = parse_period(period)
    bls = [
        bl for bl in db.query(BillOfLading).all()
        if bl.created_at is not None and start <= _utc(bl.created_at) < end
    ]
    bls.sort(key=lambda bl: _utc(bl.created_at), reverse=True)
    totals = expense_totals(db, [bl.id for bl in bls])
    client_names = {c.id: c.name for c in db.query(Client.id, Client.name).all()}

    results = []
    for bl in bls:
        total, _ = totals.get(bl.id, (0.0, 0))
        allocated = float(bl.allocated_amount or 0.0)
        results.append(
            {
                "bl_id": bl.id,
                "bl_number": bl.bl_number,
                "client_name": client_names.get(bl.client_id, "Client inconnu"),
                "allocated_amount": allocated,
                "total_expenses": total,
                "profit": allocated - total,
                "created_at": bl.created_at,
            }
        )
    return results


def dashboard(db: Session) -> dict:
    bls = db.query(BillOfLading).all()
    totals = expense_totals(db)
    total_expenses = sum(t for t, _ in totals.values())
    total_allocated = sum(float(bl.allocated_amount or 0.0) for bl in bls)

    by_status: Dict[str, int] = {}
    profitable = 0
    for bl in bls:
        by_status[bl.status] = by_status.get(bl.status, 0) + 1
        spent, _ = totals.get(bl.id, (0.0, 0))
        if float(bl.allocated_amount or 0.0) - spent >= 0:
            profitable += 1

    open_client_ids = {bl.client_id for bl in bls if bl.status == "en cours" and bl.client_id}
    return {
        "total_clients": db.query(Client).count(),
        "total_bls": len(bls),
        "bls_by_status": {
            "en cours": by_status.get("en cours", 0),
            "terminé": by_status.get("terminé", 0),
            "inactif": by_status.get("inactif", 0),
        },
        "total_allocated": total_allocated,
        "total_expenses": total_expenses,
        "overall_profitability": total_allocated - total_expenses,
        "profitable_bls": profitable,
        "loss_making_bls": len(bls) - profitable,
        "clients_with_open_bls": len(open_client_ids),
    }
