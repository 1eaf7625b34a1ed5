from fastapi import APIRouter, Depends

from app.api.deps import get_inventory
from app.services.inventory_service import InventoryService

router = APIRouter()


@router.get("/health", tags=["health"])
def health(svc: InventoryService = Depends(get_inventory)):
    storage_ok = False
    try:
        storage_ok = svc.storage.health_check()
    except Exception:
        storage_ok = False

    interrupted = svc.interrupted_write
    return {
        "status": "ok" if storage_ok and not interrupted else "degraded",
        "storage": svc.storage.name,
        "storage_ok": storage_ok,
        "auto_remove_on_zero": svc.auto_remove_on_zero,
        "interrupted_write": interrupted,
    }
