from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from app.schemas.movement_schema import MovementRecord
from app.schemas.product_schema import ProductRecord


class LedgerStorage(ABC):
    """
    Durable home of the two ledger collections.

    Each collection is loaded and saved whole and independently of the other.
    A missing collection loads as an empty list; any other failure raises
    PersistenceError. The pending marker brackets a flush so that a crash
    between the in-memory mutation and the final save can be detected on the
    next load.
    """

    name = "storage"

    @abstractmethod
    def load_products(self) -> List[ProductRecord]: ...

    @abstractmethod
    def save_products(self, products: Sequence[ProductRecord]) -> None: ...

    @abstractmethod
    def load_movements(self) -> List[MovementRecord]: ...

    @abstractmethod
    def save_movements(self, movements: Sequence[MovementRecord]) -> None: ...

    @abstractmethod
    def mark_pending(self, operation: str) -> None: ...

    @abstractmethod
    def clear_pending(self) -> None: ...

    @abstractmethod
    def read_pending(self) -> Optional[dict]:
        """Return {"operation", "startedAt"} left by an unfinished flush, or None."""

    def health_check(self) -> bool:
        return True
