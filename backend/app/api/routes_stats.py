from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.deps import get_inventory
from app.schemas.product_schema import as_utc
from app.services.inventory_service import InventoryService
from app.services.report_service import ReportService
from app.services.stats_service import StatsService

router = APIRouter(prefix="/api", tags=["stats"])


@router.get("/stats", summary="Dashboard statistics")
def get_stats(svc: InventoryService = Depends(get_inventory)):
    return StatsService(svc).get_stats().model_dump(mode="json", by_alias=True)


@router.get("/reports/low-stock", summary="Products at or below their minimum stock")
def low_stock_report(svc: InventoryService = Depends(get_inventory)):
    return ReportService(svc).low_stock().model_dump(mode="json", by_alias=True)


@router.get("/reports/movements", summary="Movement summary for a period")
def movements_report(
    since: Optional[datetime] = Query(None),
    until: Optional[datetime] = Query(None),
    svc: InventoryService = Depends(get_inventory),
):
    since = as_utc(since) if since else None
    until = as_utc(until) if until else None
    if since and until and since > until:
        raise HTTPException(status_code=400, detail="since must not be after until")
    report = ReportService(svc).movements(since=since, until=until)
    return report.model_dump(mode="json", by_alias=True)
