import importlib
import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from app.config import settings
from app.utils.log import get_logger

log = get_logger("db")


def make_engine(url: str) -> Engine:
    connect_args = {}
    if url.startswith("sqlite"):
        # FastAPI runs sync handlers on a threadpool
        connect_args["check_same_thread"] = False
    return create_engine(url, future=True, echo=False, connect_args=connect_args)


DATABASE_URL = settings.DATABASE_URL
engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# model modules whose tables live in Base.metadata
MODEL_MODULES = [
    "app.models.product",
    "app.models.stock_movement",
]


def init_db(bind: Engine = None, reset: bool = False):
    """
    Create the ledger tables on `bind` (the default engine when omitted).

    Tables are dropped first when `reset` is true or the RESET_DB env var is
    set to 1/true/yes, which gives tests and demos a clean store.
    """
    bind = bind or engine
    for mod in MODEL_MODULES:
        importlib.import_module(mod)

    env_reset = os.environ.get("RESET_DB", "false").lower() in ("1", "true", "yes")
    if reset or env_reset:
        log.info("Resetting database tables on %s", bind.url)
        Base.metadata.drop_all(bind=bind)

    Base.metadata.create_all(bind=bind)
    log.debug("Database initialized on %s", bind.url)
