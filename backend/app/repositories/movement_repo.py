from datetime import datetime
from typing import Iterable, List, Optional

from app.models.stock_movement import Polarity, ReasonType
from app.schemas.movement_schema import MovementRecord


class MovementRepository:
    """Append-only movement log kept in timestamp order."""

    def __init__(self, movements: Iterable[MovementRecord] = ()):
        self._items: List[MovementRecord] = sorted(movements, key=lambda m: m.timestamp)
        self._ids = {m.id for m in self._items}

    def __len__(self) -> int:
        return len(self._items)

    def all(self) -> List[MovementRecord]:
        return list(self._items)

    def append(self, movement: MovementRecord) -> MovementRecord:
        if movement.id in self._ids:
            raise ValueError(f"Duplicate movement id {movement.id}")
        if self._items and movement.timestamp < self._items[-1].timestamp:
            raise ValueError("Movements must be appended in timestamp order")
        self._items.append(movement)
        self._ids.add(movement.id)
        return movement

    def get(self, movement_id: str) -> Optional[MovementRecord]:
        return next((m for m in self._items if m.id == movement_id), None)

    def for_product(self, product_id: str) -> List[MovementRecord]:
        """Oldest first: the order a replay folds in."""
        return [m for m in self._items if m.product_id == product_id]

    def list(
        self,
        product_id: Optional[str] = None,
        reason_type: Optional[ReasonType] = None,
        polarity: Optional[Polarity] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[MovementRecord]:
        """Newest first."""
        out = []
        for m in reversed(self._items):
            if product_id and m.product_id != product_id:
                continue
            if reason_type and m.reason_type != reason_type:
                continue
            if polarity and m.polarity != polarity:
                continue
            if since and m.timestamp < since:
                continue
            if until and m.timestamp > until:
                continue
            out.append(m)
        return out

    def count_since(self, since: datetime, until: Optional[datetime] = None) -> int:
        return sum(
            1
            for m in self._items
            if m.timestamp >= since and (until is None or m.timestamp <= until)
        )

    def snapshot(self) -> int:
        return len(self._items)

    def restore(self, length: int) -> None:
        for m in self._items[length:]:
            self._ids.discard(m.id)
        del self._items[length:]
