from datetime import datetime
from typing import Annotated, Dict, Optional, Tuple, Union

from pydantic import (
    AliasChoices,
    ConfigDict,
    Discriminator,
    Field,
    RootModel,
    Tag,
    field_validator,
    model_validator,
)

from app.exceptions import InventoryValidationError
from app.models.stock_movement import Polarity, ReasonType
from app.schemas.product_schema import CamelModel, as_utc

# External movement vocabularies -> (polarity, fixed reason or None).
# A None reason means the word only carries a direction and the caller
# may pick the reason; it falls back to "adjustment".
MOVEMENT_TYPES: Dict[str, Tuple[Polarity, Optional[ReasonType]]] = {
    "sale": (Polarity.DECREASE, ReasonType.SALE),
    "purchase": (Polarity.INCREASE, ReasonType.PURCHASE),
    "return": (Polarity.INCREASE, ReasonType.RETURN),
    "adjustment": (Polarity.DECREASE, ReasonType.ADJUSTMENT),
    "in": (Polarity.INCREASE, None),
    "add": (Polarity.INCREASE, None),
    "out": (Polarity.DECREASE, None),
    "remove": (Polarity.DECREASE, None),
}


def resolve_movement_type(
    movement_type: str, reason_type: Optional[Union[str, ReasonType]] = None
) -> Tuple[Polarity, ReasonType]:
    """
    Map an external movement type (and optional reason) to the canonical
    (polarity, reason_type) pair. Unknown types and contradicting reasons
    raise InventoryValidationError.
    """
    key = str(movement_type).strip().lower()
    if key not in MOVEMENT_TYPES:
        raise InventoryValidationError(f"Unknown movement type: {movement_type!r}")
    polarity, fixed_reason = MOVEMENT_TYPES[key]

    reason = None
    if reason_type is not None:
        try:
            reason = ReasonType(reason_type)
        except ValueError:
            raise InventoryValidationError(f"Unknown reason type: {reason_type!r}")

    if fixed_reason is None:
        return polarity, reason or ReasonType.ADJUSTMENT
    if reason is not None and reason is not fixed_reason:
        raise InventoryValidationError(
            f"Movement type {key!r} conflicts with reason type {reason.value!r}"
        )
    return polarity, fixed_reason


class MovementRecord(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    product_id: str
    polarity: Polarity
    reason_type: ReasonType
    quantity: int = Field(..., gt=0)
    unit_price: Optional[int] = None
    total_price: Optional[int] = None
    reference: Optional[str] = None
    reason: Optional[str] = None
    timestamp: datetime

    @model_validator(mode="before")
    @classmethod
    def _legacy_type(cls, data):
        # records written with the old {"type": "add", "movementType": "sale"} shape
        if isinstance(data, dict) and "polarity" not in data and "type" in data:
            data = dict(data)
            polarity, reason = resolve_movement_type(
                data.pop("type"),
                data.pop("movementType", None) or data.get("reasonType"),
            )
            data["polarity"] = polarity
            data["reasonType"] = reason
        return data

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class MovementFields(CamelModel):
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)
    unit_price: Optional[int] = Field(None, ge=0)
    reference: Optional[str] = None
    reason: Optional[str] = None


class CanonicalMovementCreate(MovementFields):
    polarity: Polarity
    reason_type: ReasonType = ReasonType.ADJUSTMENT

    def resolve(self) -> Tuple[Polarity, ReasonType]:
        return self.polarity, self.reason_type


class TypedMovementCreate(MovementFields):
    type: str
    reason_type: Optional[ReasonType] = Field(
        None, validation_alias=AliasChoices("reasonType", "movementType", "reason_type")
    )

    @model_validator(mode="after")
    def _check_combination(self):
        self.resolve()
        return self

    def resolve(self) -> Tuple[Polarity, ReasonType]:
        return resolve_movement_type(self.type, self.reason_type)


def _movement_shape(value) -> str:
    if isinstance(value, dict):
        return "canonical" if "polarity" in value else "typed"
    return "canonical" if hasattr(value, "polarity") else "typed"


MovementCreate = Annotated[
    Union[
        Annotated[CanonicalMovementCreate, Tag("canonical")],
        Annotated[TypedMovementCreate, Tag("typed")],
    ],
    Discriminator(_movement_shape),
]


class MovementCreateRequest(RootModel[MovementCreate]):
    """Request body for POST /api/stock-movements."""
