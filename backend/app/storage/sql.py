from datetime import datetime, timezone
from typing import List, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from pydantic import ValidationError

from app.db import engine as default_engine
from app.db import init_db
from app.exceptions import PersistenceError
from app.models.product import Product
from app.models.stock_movement import PendingWrite, StockMovement
from app.schemas.movement_schema import MovementRecord
from app.schemas.product_schema import ProductRecord
from app.storage.base import LedgerStorage
from app.utils.transactions import smart_transaction

PRODUCT_FIELDS = (
    "id",
    "name",
    "sku",
    "category",
    "quantity",
    "min_stock",
    "description",
    "last_modified",
)
MOVEMENT_FIELDS = (
    "id",
    "product_id",
    "polarity",
    "reason_type",
    "quantity",
    "unit_price",
    "total_price",
    "reference",
    "reason",
    "timestamp",
)


class SqlStorage(LedgerStorage):
    """
    Relational store: one table per collection, plus a marker table for
    in-flight flushes. A save replaces every row of its table inside a single
    transaction, so a failed save leaves the previous rows intact.
    """

    name = "sql"

    def __init__(self, bind: Engine = None):
        self.engine = bind or default_engine
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        try:
            init_db(self.engine)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Cannot initialise tables: {e}") from e

    def _load(self, model, fields, record_cls, operation: str) -> list:
        try:
            with self.SessionLocal() as s:
                rows = s.query(model).order_by(model.position).all()
                data = [{f: getattr(row, f) for f in fields} for row in rows]
        except SQLAlchemyError as e:
            raise PersistenceError(f"{operation} failed: {e}") from e
        try:
            return [record_cls.model_validate(d) for d in data]
        except ValidationError as e:
            raise PersistenceError(f"{operation}: invalid row: {e}") from e

    def _replace(self, model, fields, records, operation: str) -> None:
        try:
            with self.SessionLocal() as s:
                with smart_transaction(s, operation):
                    s.query(model).delete()
                    s.add_all(
                        model(position=i, **{f: getattr(r, f) for f in fields})
                        for i, r in enumerate(records)
                    )
        except (TypeError, ValueError) as e:
            # driver-level bind errors that SQLAlchemy does not wrap
            raise PersistenceError(f"{operation} failed: {e}") from e

    def load_products(self) -> List[ProductRecord]:
        return self._load(Product, PRODUCT_FIELDS, ProductRecord, "load_products")

    def save_products(self, products: Sequence[ProductRecord]) -> None:
        self._replace(Product, PRODUCT_FIELDS, products, "save_products")

    def load_movements(self) -> List[MovementRecord]:
        return self._load(StockMovement, MOVEMENT_FIELDS, MovementRecord, "load_movements")

    def save_movements(self, movements: Sequence[MovementRecord]) -> None:
        self._replace(StockMovement, MOVEMENT_FIELDS, movements, "save_movements")

    def mark_pending(self, operation: str) -> None:
        with self.SessionLocal() as s:
            with smart_transaction(s, "mark_pending"):
                s.query(PendingWrite).delete()
                s.add(
                    PendingWrite(operation=operation, started_at=datetime.now(timezone.utc))
                )

    def clear_pending(self) -> None:
        with self.SessionLocal() as s:
            with smart_transaction(s, "clear_pending"):
                s.query(PendingWrite).delete()

    def read_pending(self) -> Optional[dict]:
        try:
            with self.SessionLocal() as s:
                row = s.query(PendingWrite).order_by(PendingWrite.id.desc()).first()
                if not row:
                    return None
                started = row.started_at
                if started.tzinfo is None:
                    started = started.replace(tzinfo=timezone.utc)
                return {"operation": row.operation, "startedAt": started.isoformat()}
        except SQLAlchemyError as e:
            raise PersistenceError(f"read_pending failed: {e}") from e

    def health_check(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False
