import json
import os
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Type

from filelock import FileLock, Timeout
from pydantic import BaseModel, ValidationError

from app.config import settings
from app.exceptions import PersistenceError
from app.schemas.movement_schema import MovementRecord
from app.schemas.product_schema import ProductRecord
from app.storage.base import LedgerStorage
from app.utils.log import get_logger

log = get_logger("storage")


class JsonFileStorage(LedgerStorage):
    """
    Flat JSON files in one data directory:

        products.json          list of products
        stock_movements.json   list of movements
        .pending-write.json    present only while a flush is in flight

    Every save rewrites the whole file through a temp file + os.replace, under
    a FileLock on the directory so two processes never interleave a rewrite.
    """

    name = "json"
    PRODUCTS_FILE = "products.json"
    MOVEMENTS_FILE = "stock_movements.json"
    PENDING_FILE = ".pending-write.json"

    def __init__(self, data_dir, lock_timeout: Optional[int] = None):
        self.data_dir = Path(data_dir)
        self.lock_timeout = (
            settings.LOCK_TIMEOUT_SECONDS if lock_timeout is None else lock_timeout
        )
        self.lock = FileLock(str(self.data_dir / ".ledger.lock"))

    @contextmanager
    def _locked(self):
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create data dir {self.data_dir}: {e}") from e
        try:
            self.lock.acquire(timeout=self.lock_timeout)
        except Timeout:
            raise PersistenceError(
                f"Could not acquire storage lock on {self.data_dir}; try again"
            )
        try:
            yield
        finally:
            self.lock.release()

    def _read(self, filename: str) -> Optional[object]:
        path = self.data_dir / filename
        with self._locked():
            try:
                raw = path.read_bytes()
            except FileNotFoundError:
                return None
            except OSError as e:
                raise PersistenceError(f"Cannot read {path}: {e}") from e
        try:
            return json.loads(raw.decode("utf-8"))
        except ValueError as e:
            raise PersistenceError(f"Corrupt JSON in {path}: {e}") from e

    def _write(self, filename: str, payload) -> None:
        path = self.data_dir / filename
        with self._locked():
            tmp_name = None
            try:
                fd, tmp_name = tempfile.mkstemp(
                    dir=str(self.data_dir), prefix=f".{filename}.", suffix=".tmp"
                )
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(payload, fh, indent=2, ensure_ascii=False)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp_name, path)
            except OSError as e:
                if tmp_name and os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise PersistenceError(f"Cannot write {path}: {e}") from e

    def _load(self, filename: str, model: Type[BaseModel]) -> list:
        data = self._read(filename)
        if data is None:
            log.info("%s not found in %s, starting empty", filename, self.data_dir)
            return []
        if not isinstance(data, list):
            raise PersistenceError(f"{filename} must hold a JSON list")
        try:
            return [model.model_validate(item) for item in data]
        except ValidationError as e:
            raise PersistenceError(f"Invalid record in {filename}: {e}") from e

    def load_products(self) -> List[ProductRecord]:
        return self._load(self.PRODUCTS_FILE, ProductRecord)

    def save_products(self, products: Sequence[ProductRecord]) -> None:
        self._write(
            self.PRODUCTS_FILE,
            [p.model_dump(mode="json", by_alias=True) for p in products],
        )

    def load_movements(self) -> List[MovementRecord]:
        return self._load(self.MOVEMENTS_FILE, MovementRecord)

    def save_movements(self, movements: Sequence[MovementRecord]) -> None:
        self._write(
            self.MOVEMENTS_FILE,
            [m.model_dump(mode="json", by_alias=True) for m in movements],
        )

    def mark_pending(self, operation: str) -> None:
        self._write(
            self.PENDING_FILE,
            {
                "operation": operation,
                "startedAt": datetime.now(timezone.utc).isoformat(),
            },
        )

    def clear_pending(self) -> None:
        path = self.data_dir / self.PENDING_FILE
        with self._locked():
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                raise PersistenceError(f"Cannot remove {path}: {e}") from e

    def read_pending(self) -> Optional[dict]:
        data = self._read(self.PENDING_FILE)
        return data if isinstance(data, dict) else None

    def health_check(self) -> bool:
        target = self.data_dir if self.data_dir.exists() else self.data_dir.parent
        return os.access(target, os.W_OK)
