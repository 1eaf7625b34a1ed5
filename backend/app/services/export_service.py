import csv

import pandas as pd

from app.services.inventory_service import DELETED_PRODUCT_LABEL, InventoryService

PRODUCT_COLUMNS = {
    "name": "Name",
    "sku": "SKU",
    "category": "Category",
    "quantity": "Quantity",
    "min_stock": "Min Stock",
    "description": "Description",
    "last_modified": "Last Modified",
}
MOVEMENT_COLUMNS = {
    "timestamp": "Date",
    "product": "Product",
    "reason_type": "Type",
    "polarity": "Direction",
    "quantity": "Quantity",
    "unit_price": "Unit Price",
    "total_price": "Total Price",
    "reference": "Reference",
    "reason": "Reason",
}


def _to_csv(rows, columns) -> str:
    # object dtype keeps optional ints as ints instead of NaN floats
    df = pd.DataFrame(rows, columns=list(columns), dtype=object)
    df = df.rename(columns=columns)
    return df.to_csv(index=False, quoting=csv.QUOTE_NONNUMERIC, na_rep="")


class ExportService:
    def __init__(self, inventory: InventoryService):
        self.inventory = inventory

    def products_csv(self) -> str:
        rows = [
            {
                "name": p.name,
                "sku": p.sku or "",
                "category": p.category,
                "quantity": p.quantity,
                "min_stock": p.min_stock,
                "description": p.description or "",
                "last_modified": p.last_modified.isoformat(),
            }
            for p in self.inventory.list_products()
        ]
        return _to_csv(rows, PRODUCT_COLUMNS)

    def movements_csv(self) -> str:
        products, movements = self.inventory.snapshot()
        names = {p.id: p.name for p in products}
        rows = [
            {
                "timestamp": m.timestamp.isoformat(),
                "product": names.get(m.product_id, DELETED_PRODUCT_LABEL),
                "reason_type": m.reason_type.value,
                "polarity": m.polarity.value,
                "quantity": m.quantity,
                "unit_price": m.unit_price,
                "total_price": m.total_price,
                "reference": m.reference or "",
                "reason": m.reason or "",
            }
            for m in reversed(movements)
        ]
        return _to_csv(rows, MOVEMENT_COLUMNS)
