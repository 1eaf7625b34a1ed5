from datetime import datetime, timedelta
from typing import Optional

from app.config import settings
from app.schemas.report_schema import StatsOut
from app.services.inventory_service import InventoryService


class StatsService:
    """Dashboard figures, recomputed from a fresh snapshot on every call."""

    def __init__(self, inventory: InventoryService, window_hours: Optional[int] = None):
        self.inventory = inventory
        self.window = timedelta(
            hours=settings.RECENT_WINDOW_HOURS if window_hours is None else window_hours
        )

    def get_stats(self, now: Optional[datetime] = None) -> StatsOut:
        now = now or self.inventory.now()
        products, movements = self.inventory.snapshot()
        since = now - self.window
        return StatsOut(
            total_products=len(products),
            total_stock=sum(p.quantity for p in products),
            low_stock=sum(1 for p in products if 0 < p.quantity <= p.min_stock),
            out_of_stock=sum(1 for p in products if p.quantity == 0),
            recent_movements=sum(1 for m in movements if since <= m.timestamp <= now),
        )
