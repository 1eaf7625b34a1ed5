from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.deps import get_inventory
from app.exceptions import InventoryValidationError, PersistenceError
from app.schemas.movement_schema import MovementCreateRequest
from app.schemas.product_schema import as_utc
from app.services.inventory_service import InventoryService

router = APIRouter(prefix="/api/stock-movements", tags=["movements"])


@router.get("", summary="List stock movements, newest first")
def list_movements(
    q: Optional[str] = Query(None, description="search reference or product name"),
    product_id: Optional[str] = Query(None),
    reason_type: Optional[str] = Query(None),
    polarity: Optional[str] = Query(None),
    since: Optional[datetime] = Query(None),
    until: Optional[datetime] = Query(None),
    svc: InventoryService = Depends(get_inventory),
):
    try:
        items = svc.list_movements(
            q=q,
            product_id=product_id,
            reason_type=reason_type,
            polarity=polarity,
            since=as_utc(since) if since else None,
            until=as_utc(until) if until else None,
        )
    except InventoryValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [m.model_dump(mode="json", by_alias=True) for m in items]


@router.post("", status_code=201, summary="Record a stock movement")
def create_movement(
    payload: MovementCreateRequest, svc: InventoryService = Depends(get_inventory)
):
    """
    payload: either {"productId", "polarity", "reasonType"?, "quantity", ...}
    or {"productId", "type": "sale"|"purchase"|"return"|"adjustment"|"in"|"out"|"add"|"remove", "quantity", ...}
    """
    try:
        m = svc.create_movement(payload)
    except InventoryValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError:
        raise HTTPException(status_code=500, detail="Failed to create stock movement")
    return m.model_dump(mode="json", by_alias=True)
