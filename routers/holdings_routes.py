# routers/holdings_routes.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from database import get_db
from models.user import User
from schemas.holding import HoldingCreate, HoldingOut
from services.auth import get_current_db_user
from services.holding_service import (
    HoldingNotFound,
    HoldingValidationError,
    PositionLedger,
    StorageError,
)

router = APIRouter()


def get_ledger(db: Session = Depends(get_db)) -> PositionLedger:
    return PositionLedger(db)


@router.post("/assets", response_model=HoldingOut)
def add_asset(
    payload: HoldingCreate,
    ledger: PositionLedger = Depends(get_ledger),
    user: User = Depends(get_current_db_user),
):
    try:
        return ledger.add_or_merge(
            user.id,
            payload.ticker,
            payload.asset_type,
            payload.quantity,
            payload.price,
        )
    except HoldingValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=str(exc))


@router.get("/assets", response_model=List[HoldingOut])
def list_assets(
    ledger: PositionLedger = Depends(get_ledger),
    user: User = Depends(get_current_db_user),
):
    try:
        return ledger.list_holdings(user.id)
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=str(exc))


@router.delete("/assets/{holding_id}")
def delete_asset(
    holding_id: int,
    ledger: PositionLedger = Depends(get_ledger),
    user: User = Depends(get_current_db_user),
):
    try:
        ledger.remove(user.id, holding_id)
    except HoldingNotFound:
        raise HTTPException(status_code=404, detail="Holding not found")
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return {"detail": "Deleted"}
