from datetime import datetime, timedelta
from typing import Dict, Optional

from app.models.stock_movement import ReasonType
from app.schemas.report_schema import (
    LowStockReport,
    MovementReport,
    ProductActivity,
    ReasonSummary,
)
from app.services.inventory_service import DELETED_PRODUCT_LABEL, InventoryService

TOP_PRODUCTS = 5


class ReportService:
    def __init__(self, inventory: InventoryService):
        self.inventory = inventory

    def low_stock(self) -> LowStockReport:
        products, _ = self.inventory.snapshot()
        flagged = sorted(
            (p for p in products if p.stock_level() != "normal"),
            key=lambda p: (p.quantity, p.name.lower()),
        )
        return LowStockReport(
            out_of_stock=[p for p in flagged if p.quantity == 0],
            critical=[p for p in flagged if p.quantity > 0],
        )

    def movements(
        self, since: Optional[datetime] = None, until: Optional[datetime] = None
    ) -> MovementReport:
        """
        Per-reason counts and values for movements in [since, until]
        (default: the last 7 days), plus the top products by movement value.
        """
        until = until or self.inventory.now()
        since = since or until - timedelta(days=7)
        products, movements = self.inventory.snapshot()
        names = {p.id: p.name for p in products}
        window = [m for m in movements if since <= m.timestamp <= until]

        by_reason: Dict[str, ReasonSummary] = {r.value: ReasonSummary() for r in ReasonType}
        activity: Dict[str, ProductActivity] = {}
        for m in window:
            value = m.total_price or 0
            summary = by_reason[m.reason_type.value]
            summary.count += 1
            summary.quantity += m.quantity
            summary.value += value

            act = activity.get(m.product_id)
            if act is None:
                act = activity[m.product_id] = ProductActivity(
                    product_id=m.product_id,
                    name=names.get(m.product_id, DELETED_PRODUCT_LABEL),
                )
            act.total_quantity += m.quantity
            act.total_value += value
            if m.reason_type is ReasonType.SALE:
                act.sold += m.quantity
            elif m.reason_type is ReasonType.PURCHASE:
                act.purchased += m.quantity

        top = sorted(activity.values(), key=lambda a: a.total_value, reverse=True)
        return MovementReport(
            since=since,
            until=until,
            total_movements=len(window),
            by_reason=by_reason,
            top_products=top[:TOP_PRODUCTS],
        )
