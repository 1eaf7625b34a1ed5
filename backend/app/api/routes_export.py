from fastapi import APIRouter, Depends, Response

from app.api.deps import get_inventory
from app.services.export_service import ExportService
from app.services.inventory_service import InventoryService

router = APIRouter(prefix="/api/export", tags=["export"])


def _csv_response(body: str, filename: str) -> Response:
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/csv", summary="Export products as CSV")
def export_products(svc: InventoryService = Depends(get_inventory)):
    return _csv_response(ExportService(svc).products_csv(), "products.csv")


@router.get("/movements-csv", summary="Export stock movements as CSV")
def export_movements(svc: InventoryService = Depends(get_inventory)):
    return _csv_response(ExportService(svc).movements_csv(), "stock_movements.csv")
