import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional, Tuple, Type, TypeVar, Union
from uuid import uuid4

from pydantic import BaseModel, TypeAdapter, ValidationError

from app.config import settings
from app.exceptions import InventoryValidationError, PersistenceError, ProductNotFound
from app.models.stock_movement import Polarity, ReasonType
from app.repositories.movement_repo import MovementRepository
from app.repositories.product_repo import STOCK_LEVELS, ProductRepository
from app.schemas.movement_schema import (
    MovementCreate,
    MovementCreateRequest,
    MovementFields,
    MovementRecord,
)
from app.schemas.product_schema import ProductCreate, ProductRecord, ProductUpdate
from app.storage.base import LedgerStorage
from app.utils.log import get_logger

log = get_logger("inventory")

DELETED_PRODUCT_LABEL = "Deleted product"

M = TypeVar("M", bound=BaseModel)

_movement_request = TypeAdapter(MovementCreate)


def apply_movement(quantity: int, polarity: Polarity, amount: int) -> int:
    """One step of the clamped fold: never below zero."""
    delta = amount if polarity is Polarity.INCREASE else -amount
    return max(0, quantity + delta)


def fold_quantity(start: int, movements: Iterable[MovementRecord]) -> int:
    q = start
    for m in movements:
        q = apply_movement(q, m.polarity, m.quantity)
    return q


def _parse(model: Type[M], fields) -> M:
    if isinstance(fields, model):
        return fields
    try:
        return model.model_validate(fields)
    except ValidationError as e:
        raise InventoryValidationError(str(e)) from e


def _enum(enum_cls, value, field: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(v.value for v in enum_cls)
        raise InventoryValidationError(f"{field} must be one of: {allowed}; got {value!r}")


def _positive_int(value, field: str, allow_zero: bool = False) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InventoryValidationError(f"{field} must be an integer")
    if value < 0 or (value == 0 and not allow_zero):
        raise InventoryValidationError(f"{field} must be {'>= 0' if allow_zero else '> 0'}")
    return value


class InventoryService:
    """
    Owns the product collection and the movement log, and is the only writer
    of either.

    Every mutation runs under one lock and is flushed to storage before it
    returns. If the flush fails, in-memory state goes back to what it was
    before the call and the error propagates.
    """

    def __init__(
        self,
        storage: LedgerStorage,
        auto_remove_on_zero: Optional[bool] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.storage = storage
        self.auto_remove_on_zero = (
            settings.AUTO_REMOVE_ON_ZERO
            if auto_remove_on_zero is None
            else auto_remove_on_zero
        )
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.RLock()
        self._last_ts: Optional[datetime] = None
        self.products = ProductRepository()
        self.movements = MovementRepository()
        self.interrupted_write: Optional[dict] = None
        self.load()

    def _now(self) -> datetime:
        # strictly increasing, so timestamps give the log a total order
        now = self._clock()
        if self._last_ts is not None and now <= self._last_ts:
            now = self._last_ts + timedelta(microseconds=1)
        self._last_ts = now
        return now

    # -- persistence -------------------------------------------------------

    def load(self) -> None:
        """(Re)load both collections from storage."""
        with self._lock:
            pending = self.storage.read_pending()
            products = self.storage.load_products()
            movements = self.storage.load_movements()
            self.products = ProductRepository(products)
            self.movements = MovementRepository(movements)
            stamps = [m.timestamp for m in movements] + [p.last_modified for p in products]
            self._last_ts = max(stamps) if stamps else None
            self.interrupted_write = pending
            if pending:
                log.warning(
                    "Previous %s flush started at %s never completed; "
                    "stored collections may not reflect that operation",
                    pending.get("operation"),
                    pending.get("startedAt"),
                )
            log.info(
                "Loaded %d products and %d movements from %s storage",
                len(products),
                len(movements),
                self.storage.name,
            )

    def _flush(
        self,
        operation: str,
        before_products,
        before_movements: int,
        products: bool = True,
        movements: bool = False,
    ) -> None:
        written = []
        try:
            self.storage.mark_pending(operation)
            if products:
                self.storage.save_products(self.products.all())
                written.append("products")
            if movements:
                self.storage.save_movements(self.movements.all())
                written.append("movements")
            self.storage.clear_pending()
        except Exception:
            log.error("Flush of %s failed; rolling back in-memory state", operation)
            self.products.restore(before_products)
            self.movements.restore(before_movements)
            self._restore_durable(operation, written)
            raise

    def _restore_durable(self, operation: str, written: List[str]) -> None:
        # put back any collection this failed flush already rewrote
        try:
            if "products" in written:
                self.storage.save_products(self.products.all())
            if "movements" in written:
                self.storage.save_movements(self.movements.all())
            self.storage.clear_pending()
        except PersistenceError:
            log.exception(
                "Could not restore storage after failed %s; pending marker left in place",
                operation,
            )

    # -- products ----------------------------------------------------------

    def list_products(
        self,
        q: Optional[str] = None,
        category: Optional[str] = None,
        stock_level: Optional[str] = None,
    ) -> List[ProductRecord]:
        if stock_level is not None and stock_level not in STOCK_LEVELS:
            raise InventoryValidationError(
                f"stock_level must be one of: {', '.join(STOCK_LEVELS)}"
            )
        with self._lock:
            return self.products.list(q=q, category=category, stock_level=stock_level)

    def get_product(self, product_id: str) -> ProductRecord:
        with self._lock:
            p = self.products.get(product_id)
        if p is None:
            raise ProductNotFound(product_id)
        return p

    def create_product(self, fields: Union[ProductCreate, dict]) -> ProductRecord:
        data = _parse(ProductCreate, fields)
        with self._lock:
            before = self.products.snapshot()
            p = self.products.create(data, self._now())
            self._flush("create_product", before, self.movements.snapshot())
        log.info("Created product %s (%s) qty=%d", p.id, p.name, p.quantity)
        return p

    def update_product(self, product_id: str, fields: Union[ProductUpdate, dict]) -> ProductRecord:
        changes = _parse(ProductUpdate, fields).model_dump(exclude_unset=True)
        with self._lock:
            if product_id not in self.products:
                raise ProductNotFound(product_id)
            before = self.products.snapshot()
            p = self.products.update(product_id, changes, self._now())
            self._flush("update_product", before, self.movements.snapshot())
        log.info("Updated product %s fields=%s", product_id, sorted(changes))
        return p

    def delete_product(self, product_id: str) -> None:
        with self._lock:
            before = self.products.snapshot()
            if not self.products.delete(product_id):
                raise ProductNotFound(product_id)
            self._flush("delete_product", before, self.movements.snapshot())
        log.info("Deleted product %s", product_id)

    # -- movements ---------------------------------------------------------

    def record_movement(
        self,
        product_id: str,
        polarity: Union[Polarity, str],
        reason_type: Union[ReasonType, str],
        quantity: int,
        unit_price: Optional[int] = None,
        reference: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> MovementRecord:
        """
        Apply one stock movement and append it to the log.

        The product's quantity moves by +/- quantity and is clamped at zero.
        A decrease that lands exactly on zero removes the product when
        auto_remove_on_zero is on. A movement for an unknown product is still
        logged but changes nothing.
        """
        if not isinstance(product_id, str) or not product_id:
            raise InventoryValidationError("productId is required")
        polarity = _enum(Polarity, polarity, "polarity")
        reason_type = _enum(ReasonType, reason_type, "reasonType")
        quantity = _positive_int(quantity, "quantity")
        if unit_price is not None:
            unit_price = _positive_int(unit_price, "unitPrice", allow_zero=True)
        _parse(
            MovementFields,
            {
                "product_id": product_id,
                "quantity": quantity,
                "unit_price": unit_price,
                "reference": reference,
                "reason": reason,
            },
        )

        with self._lock:
            before_products = self.products.snapshot()
            before_movements = self.movements.snapshot()
            now = self._now()
            movement = MovementRecord(
                id=str(uuid4()),
                product_id=product_id,
                polarity=polarity,
                reason_type=reason_type,
                quantity=quantity,
                unit_price=unit_price,
                total_price=unit_price * quantity if unit_price is not None else None,
                reference=reference,
                reason=reason,
                timestamp=now,
            )

            product = self.products.get(product_id)
            try:
                if product is None:
                    log.info(
                        "Movement for unknown product %s recorded without stock effect",
                        product_id,
                    )
                else:
                    new_quantity = apply_movement(product.quantity, polarity, quantity)
                    self.products.set_quantity(product_id, new_quantity, now)
                    log.info(
                        "Product %s %s %d -> %d (%s)",
                        product_id,
                        polarity.value,
                        product.quantity,
                        new_quantity,
                        reason_type.value,
                    )
                    if (
                        self.auto_remove_on_zero
                        and polarity is Polarity.DECREASE
                        and new_quantity == 0
                    ):
                        self.products.delete(product_id)
                        log.info("Product %s reached zero and was removed", product_id)

                self.movements.append(movement)
            except Exception:
                self.products.restore(before_products)
                self.movements.restore(before_movements)
                raise
            self._flush(
                "record_movement",
                before_products,
                before_movements,
                products=product is not None,
                movements=True,
            )
        return movement

    def create_movement(self, request) -> MovementRecord:
        """Resolve a canonical or typed request body, then record it."""
        if isinstance(request, MovementCreateRequest):
            request = request.root
        elif isinstance(request, dict):
            try:
                request = _movement_request.validate_python(request)
            except ValidationError as e:
                raise InventoryValidationError(str(e)) from e
        polarity, reason_type = request.resolve()
        return self.record_movement(
            request.product_id,
            polarity,
            reason_type,
            request.quantity,
            unit_price=request.unit_price,
            reference=request.reference,
            reason=request.reason,
        )

    def list_movements(
        self,
        q: Optional[str] = None,
        product_id: Optional[str] = None,
        reason_type: Optional[Union[ReasonType, str]] = None,
        polarity: Optional[Union[Polarity, str]] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[MovementRecord]:
        if reason_type is not None:
            reason_type = _enum(ReasonType, reason_type, "reasonType")
        if polarity is not None:
            polarity = _enum(Polarity, polarity, "polarity")
        with self._lock:
            items = self.movements.list(
                product_id=product_id,
                reason_type=reason_type,
                polarity=polarity,
                since=since,
                until=until,
            )
            if not q:
                return items
            needle = q.lower()
            return [
                m
                for m in items
                if needle in self._product_name(m.product_id).lower()
                or (m.reference and needle in m.reference.lower())
            ]

    def replay_quantity(self, product_id: str, start: int = 0) -> int:
        """Fold the product's movements, oldest first, from `start`."""
        with self._lock:
            return fold_quantity(start, self.movements.for_product(product_id))

    # -- read helpers ------------------------------------------------------

    def _product_name(self, product_id: str) -> str:
        p = self.products.get(product_id)
        return p.name if p else DELETED_PRODUCT_LABEL

    def product_name(self, product_id: str) -> str:
        with self._lock:
            return self._product_name(product_id)

    def snapshot(self) -> Tuple[List[ProductRecord], List[MovementRecord]]:
        """Consistent copy of both collections, never mid-movement."""
        with self._lock:
            return self.products.all(), self.movements.all()

    def now(self) -> datetime:
        """Current time, never earlier than the newest stamp handed out."""
        with self._lock:
            now = self._clock()
            if self._last_ts is not None and now < self._last_ts:
                return self._last_ts
            return now
