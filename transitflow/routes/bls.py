from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth.session import SessionContext, get_session_context
from ..db import get_db
from ..models.models import BillOfLading
from ..schemas.bls import (
    BillOfLadingResponse,
    BLBalanceResponse,
    ContainerBase,
    ContainerResponse,
    ExpenseBase,
    ExpenseResponse,
)
from ..services import store
from ..services.reports import bl_balance
from ..services.store import EntityNotFoundError
from .entities import authorize_protected_delete


router = APIRouter(prefix="/bls", tags=["bls"])


def _get_bl(db: Session, bl_id: str) -> BillOfLading:
    bl = store.bills_of_lading.get(db, bl_id)
    if bl is None:
        raise HTTPException(status_code=404, detail="BL not found")
    return bl


@router.get("/by-client/{client_id}", response_model=List[BillOfLadingResponse])
def list_bls_for_client(
    client_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    return store.bills_of_lading.list(db, client_id=client_id)


@router.get("/{bl_id}/balance", response_model=BLBalanceResponse)
def get_bl_balance(
    bl_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    """Allocated amount minus the sum of the BL's expenses"""
    return bl_balance(db, _get_bl(db, bl_id))


# ---------- CONTAINERS ----------
@router.get("/{bl_id}/containers", response_model=List[ContainerResponse])
def list_bl_containers(
    bl_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    _get_bl(db, bl_id)
    return store.containers.list(db, bl_id=bl_id)


@router.post("/{bl_id}/containers", response_model=ContainerResponse)
def add_bl_container(
    bl_id: str,
    payload: ContainerBase,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    bl = _get_bl(db, bl_id)
    data = payload.model_dump()
    data.update(bl_id=bl.id, bl_number=bl.bl_number, created_by_user_id=ctx.uid)
    return store.containers.add(db, data)


@router.delete("/{bl_id}/containers/{container_id}")
def delete_bl_container(
    bl_id: str,
    container_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    authorize_protected_delete(ctx)
    try:
        store.containers.delete_from_bl(db, bl_id, container_id)
    except EntityNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Container not found on this BL") from exc
    return {"status": "deleted", "id": container_id}


# ---------- EXPENSES ----------
@router.get("/{bl_id}/expenses", response_model=List[ExpenseResponse])
def list_bl_expenses(
    bl_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    _get_bl(db, bl_id)
    return store.expenses.list(db, bl_id=bl_id)


@router.post("/{bl_id}/expenses", response_model=ExpenseResponse)
def add_bl_expense(
    bl_id: str,
    payload: ExpenseBase,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    _get_bl(db, bl_id)
    data = payload.model_dump()
    data.update(bl_id=bl_id, employee_id=ctx.uid)
    if data.get("date") is None:
        data["date"] = datetime.now(timezone.utc)
    return store.expenses.add(db, data)
