from datetime import datetime
from typing import Dict, List

from app.schemas.product_schema import CamelModel, ProductRecord


class StatsOut(CamelModel):
    total_products: int
    total_stock: int
    low_stock: int
    out_of_stock: int
    recent_movements: int


class LowStockReport(CamelModel):
    out_of_stock: List[ProductRecord]
    critical: List[ProductRecord]


class ReasonSummary(CamelModel):
    count: int = 0
    quantity: int = 0
    value: int = 0  # sum of totalPrice, minor units


class ProductActivity(CamelModel):
    product_id: str
    name: str
    total_quantity: int = 0
    total_value: int = 0
    sold: int = 0
    purchased: int = 0


class MovementReport(CamelModel):
    since: datetime
    until: datetime
    total_movements: int
    by_reason: Dict[str, ReasonSummary]
    top_products: List[ProductActivity]
