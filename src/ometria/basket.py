"""Pydantic models for basket payloads."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class OmetriaBasketItem(BaseModel):
    """A line in a basket."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    product_id: str = Field(alias="productId")
    sku: str | None = None
    quantity: int = Field(ge=0)
    price: float


class OmetriaBasket(BaseModel):
    """Basket snapshot sent with basketUpdated and orderCompleted events."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    total_price: float = Field(alias="totalPrice")
    currency: str
    items: list[OmetriaBasketItem] = Field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        """Dump with wire (camelCase) keys, dropping unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True)
