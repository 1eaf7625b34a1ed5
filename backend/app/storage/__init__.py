from app.config import Settings, settings as default_settings
from app.storage.base import LedgerStorage


def build_storage(cfg: Settings = None) -> LedgerStorage:
    """Pick the storage adapter named by STORAGE_BACKEND."""
    cfg = cfg or default_settings
    backend = cfg.STORAGE_BACKEND.lower()
    if backend == "json":
        from app.storage.json_file import JsonFileStorage

        return JsonFileStorage(cfg.DATA_DIR, lock_timeout=cfg.LOCK_TIMEOUT_SECONDS)
    if backend == "sql":
        from app.db import make_engine
        from app.storage.sql import SqlStorage

        return SqlStorage(make_engine(cfg.DATABASE_URL))
    if backend == "memory":
        from app.storage.memory import InMemoryStorage

        return InMemoryStorage()
    raise ValueError(f"Unknown STORAGE_BACKEND: {cfg.STORAGE_BACKEND!r}")
