from collections import Counter
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from app.exceptions import PersistenceError
from app.schemas.movement_schema import MovementRecord
from app.schemas.product_schema import ProductRecord
from app.storage.base import LedgerStorage


class InMemoryStorage(LedgerStorage):
    """
    Process-local storage used by tests and throwaway runs.

    Records are kept in their JSON form so a save/load cycle goes through
    the same serialization as the file store. Operation names added to
    `fail_on` ("save_products", "mark_pending", ...) raise PersistenceError.
    """

    name = "memory"

    def __init__(self, products: Sequence[dict] = (), movements: Sequence[dict] = ()):
        self.products: List[dict] = list(products)
        self.movements: List[dict] = list(movements)
        self.pending: Optional[dict] = None
        self.fail_on = set()
        self.calls = Counter()

    def _check(self, operation: str):
        self.calls[operation] += 1
        if operation in self.fail_on:
            raise PersistenceError(f"simulated {operation} failure")

    def load_products(self) -> List[ProductRecord]:
        self._check("load_products")
        return [ProductRecord.model_validate(p) for p in self.products]

    def save_products(self, products: Sequence[ProductRecord]) -> None:
        self._check("save_products")
        self.products = [p.model_dump(mode="json", by_alias=True) for p in products]

    def load_movements(self) -> List[MovementRecord]:
        self._check("load_movements")
        return [MovementRecord.model_validate(m) for m in self.movements]

    def save_movements(self, movements: Sequence[MovementRecord]) -> None:
        self._check("save_movements")
        self.movements = [m.model_dump(mode="json", by_alias=True) for m in movements]

    def mark_pending(self, operation: str) -> None:
        self._check("mark_pending")
        self.pending = {
            "operation": operation,
            "startedAt": datetime.now(timezone.utc).isoformat(),
        }

    def clear_pending(self) -> None:
        self._check("clear_pending")
        self.pending = None

    def read_pending(self) -> Optional[dict]:
        return dict(self.pending) if self.pending else None
