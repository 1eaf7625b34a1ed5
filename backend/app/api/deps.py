from fastapi import HTTPException, Request

from app.services.inventory_service import InventoryService


def get_inventory(request: Request) -> InventoryService:
    svc = getattr(request.app.state, "inventory", None)
    if svc is None:
        raise HTTPException(status_code=503, detail="Inventory not loaded")
    return svc
