from typing import List

from app.schemas.product_schema import ProductRecord
from app.services.inventory_service import InventoryService
from app.utils.log import get_logger

log = get_logger("alerts")


class AlertService:
    def __init__(self, inventory: InventoryService):
        self.inventory = inventory

    def scan(self) -> List[ProductRecord]:
        """Log one warning per product at or below its minimum stock."""
        products, _ = self.inventory.snapshot()
        flagged = [p for p in products if p.stock_level() != "normal"]
        for p in flagged:
            if p.quantity == 0:
                log.warning("Out of stock: %s (%s)", p.name, p.id)
            else:
                log.warning(
                    "Low stock: %s (%s) qty=%d min=%d", p.name, p.id, p.quantity, p.min_stock
                )
        return flagged
