# backend/app/schemas/product_schema.py
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.config import settings


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire and on disk."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


def as_utc(value: datetime) -> datetime:
    # sqlite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ProductRecord(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    sku: Optional[str] = None
    category: str
    quantity: int = 0
    min_stock: int = settings.DEFAULT_MIN_STOCK
    description: Optional[str] = None
    last_modified: datetime

    @field_validator("min_stock", mode="before")
    @classmethod
    def _default_min_stock(cls, v):
        # older data files store null for "not set"
        return settings.DEFAULT_MIN_STOCK if v is None else v

    @field_validator("last_modified")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    def stock_level(self) -> str:
        if self.quantity == 0:
            return "out"
        if self.quantity <= self.min_stock:
            return "low"
        return "normal"


class ProductCreate(CamelModel):
    name: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    sku: Optional[str] = None
    quantity: int = 0
    min_stock: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None


class ProductUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, min_length=1)
    sku: Optional[str] = None
    quantity: Optional[int] = None
    min_stock: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None

    @field_validator("name", "category", "quantity", "min_stock")
    @classmethod
    def _not_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} may not be null")
        return v
