from datetime import datetime
from typing import Dict, Iterable, List, Optional
from uuid import uuid4

from app.config import settings
from app.schemas.product_schema import ProductCreate, ProductRecord

STOCK_LEVELS = ("out", "low", "normal")


class ProductRepository:
    """
    Keyed in-memory product collection. Records are frozen; every mutation
    swaps in a new record, so a shallow dict copy is a complete snapshot.
    Flushing to storage is the caller's job.
    """

    def __init__(self, products: Iterable[ProductRecord] = ()):
        self._items: Dict[str, ProductRecord] = {p.id: p for p in products}

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, product_id: str) -> bool:
        return product_id in self._items

    def all(self) -> List[ProductRecord]:
        """Collection order, as persisted."""
        return list(self._items.values())

    def get(self, product_id: str) -> Optional[ProductRecord]:
        return self._items.get(product_id)

    def list(
        self,
        q: Optional[str] = None,
        category: Optional[str] = None,
        stock_level: Optional[str] = None,
    ) -> List[ProductRecord]:
        items = self._items.values()
        if q:
            needle = q.lower()
            items = [
                p
                for p in items
                if needle in p.name.lower() or (p.sku and needle in p.sku.lower())
            ]
        if category:
            items = [p for p in items if p.category == category]
        if stock_level:
            items = [p for p in items if p.stock_level() == stock_level]
        return sorted(items, key=lambda p: p.last_modified, reverse=True)

    def create(self, fields: ProductCreate, now: datetime) -> ProductRecord:
        min_stock = fields.min_stock
        p = ProductRecord(
            id=str(uuid4()),
            name=fields.name,
            sku=fields.sku,
            category=fields.category,
            quantity=max(0, fields.quantity),
            min_stock=settings.DEFAULT_MIN_STOCK if min_stock is None else min_stock,
            description=fields.description,
            last_modified=now,
        )
        self._items[p.id] = p
        return p

    def update(self, product_id: str, changes: dict, now: datetime) -> Optional[ProductRecord]:
        existing = self._items.get(product_id)
        if existing is None:
            return None
        changes = {k: v for k, v in changes.items() if k not in ("id", "last_modified")}
        if "quantity" in changes:
            changes["quantity"] = max(0, changes["quantity"])
        updated = existing.model_copy(update={**changes, "last_modified": now})
        self._items[product_id] = updated
        return updated

    def set_quantity(self, product_id: str, quantity: int, now: datetime) -> Optional[ProductRecord]:
        return self.update(product_id, {"quantity": quantity}, now)

    def delete(self, product_id: str) -> bool:
        return self._items.pop(product_id, None) is not None

    def snapshot(self) -> Dict[str, ProductRecord]:
        return dict(self._items)

    def restore(self, snapshot: Dict[str, ProductRecord]) -> None:
        self._items = dict(snapshot)
