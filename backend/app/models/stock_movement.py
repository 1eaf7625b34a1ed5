import enum

from app.db import Base
from sqlalchemy import Column, DateTime, Enum, Integer, String, Text


class Polarity(str, enum.Enum):
    INCREASE = "increase"
    DECREASE = "decrease"


class ReasonType(str, enum.Enum):
    SALE = "sale"
    PURCHASE = "purchase"
    ADJUSTMENT = "adjustment"
    RETURN = "return"


class StockMovement(Base):
    __tablename__ = "stock_movements"
    id = Column(String(36), primary_key=True)
    position = Column(Integer, nullable=False, default=0)
    # no FK: the product may be deleted while its movements stay for audit
    product_id = Column(String(36), nullable=False, index=True)
    polarity = Column(Enum(Polarity), nullable=False)
    reason_type = Column(Enum(ReasonType), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Integer, nullable=True)  # minor units
    total_price = Column(Integer, nullable=True)
    reference = Column(String(256), nullable=True)
    reason = Column(Text, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)


class PendingWrite(Base):
    """Marker row present only while a flush is in flight."""

    __tablename__ = "ledger_pending_writes"
    id = Column(Integer, primary_key=True, autoincrement=True)
    operation = Column(String(64), nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=False)
