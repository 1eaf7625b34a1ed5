from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.exceptions import PersistenceError


@contextmanager
def smart_transaction(session: Session, operation: str = "transaction") -> Iterator[Session]:
    """
    Run the block inside a transaction on `session`: a SAVEPOINT when one is
    already active, a plain BEGIN otherwise. Commit happens on exit.
    Any SQLAlchemy failure is re-raised as PersistenceError naming `operation`.
    Usage:
        with smart_transaction(db, "save_products"):
            ... DB work ...
    """
    cm = session.begin_nested() if session.in_transaction() else session.begin()
    try:
        with cm:
            yield session
    except SQLAlchemyError as e:
        raise PersistenceError(f"{operation} failed: {e}") from e
