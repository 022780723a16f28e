"""
Purchase Order history schema.
Represents historical POs used as the read-side join source.
"""

from typing import Any, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from prpo.utils import to_float, to_text


class PurchaseOrderHistory(BaseModel):
    """A historical Purchase Order line."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    material_number: Optional[str] = Field(default=None, validation_alias=AliasChoices("material_number", "자재번호"))
    description: Optional[str] = Field(default=None, validation_alias=AliasChoices("description", "자재내역"))
    vendor_code: Optional[str] = Field(default=None, validation_alias=AliasChoices("vendor_code", "업체코드"))
    vendor_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("vendor_name", "업체명"))
    ordered_quantity: Optional[float] = Field(default=None, validation_alias=AliasChoices("ordered_quantity", "발주수량"))
    ordered_amount: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("ordered_amount", "발주금액(KRW)-변환")
    )
    order_weight: Optional[float] = Field(default=None, validation_alias=AliasChoices("order_weight", "발주중량"))
    weight: Optional[float] = Field(default=None, validation_alias=AliasChoices("weight", "중량"))
    total_weight: Optional[float] = Field(default=None, validation_alias=AliasChoices("total_weight", "총중량"))

    material_key: str = ""

    @field_validator("material_number", "description", "vendor_code", "vendor_name", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Optional[str]:
        return to_text(value)

    @field_validator("ordered_quantity", "ordered_amount", "order_weight", "weight", "total_weight", mode="before")
    @classmethod
    def _coerce_number(cls, value: Any) -> Optional[float]:
        return to_float(value)

    @property
    def lookup_description(self) -> str:
        return (self.description or "").strip().upper()

    @property
    def unit_price(self) -> float:
        """Ordered amount per unit; quantity 0/missing counts as 1."""
        quantity = self.ordered_quantity or 1
        return (self.ordered_amount or 0.0) / quantity

    @property
    def resolved_weight(self) -> Optional[float]:
        """First non-empty weight, falling back to the ordered quantity."""
        return self.order_weight or self.weight or self.total_weight or self.ordered_quantity
