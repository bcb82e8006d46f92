from __future__ import annotations

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='forbid')

    def to_fields(self) -> dict[str, Any]:
        """Attribute-named values the client actually sent."""
        return self.model_dump(exclude_unset=True, by_alias=False)


class ItemCreate(CamelModel):
    sku: str
    name: str
    description: str | None = None
    category: str | None = None
    quantity: int | None = None
    min_quantity: int | None = None
    max_quantity: int | None = None
    price: Decimal | None = None
    cost: Decimal | None = None
    location: str | None = None
    barcode: str | None = None
    external_product_id: str | None = None
    external_variant_id: str | None = None
    image_url: str | None = None
    status: str | None = None
    meta: dict[str, Any] | None = Field(default=None, alias='metadata')
    pallet_id: str | None = None


class ItemUpdate(CamelModel):
    sku: str | None = None
    name: str | None = None
    description: str | None = None
    category: str | None = None
    quantity: int | None = None
    min_quantity: int | None = None
    max_quantity: int | None = None
    price: Decimal | None = None
    cost: Decimal | None = None
    location: str | None = None
    barcode: str | None = None
    external_product_id: str | None = None
    external_variant_id: str | None = None
    image_url: str | None = None
    status: str | None = None
    meta: dict[str, Any] | None = Field(default=None, alias='metadata')
    pallet_id: str | None = None


class QuantityAdjustment(CamelModel):
    quantity: int
    operation: str = 'set'


class PalletCreate(CamelModel):
    pallet_number: str
    location: str | None = None
    status: str | None = None
    capacity: int | None = None
    current_load: int | None = None
    notes: str | None = None
    meta: dict[str, Any] | None = Field(default=None, alias='metadata')


class PalletUpdate(CamelModel):
    pallet_number: str | None = None
    location: str | None = None
    status: str | None = None
    capacity: int | None = None
    current_load: int | None = None
    notes: str | None = None
    meta: dict[str, Any] | None = Field(default=None, alias='metadata')


class TokenVerifyRequest(CamelModel):
    token: str | None = None


class CatalogQuantityPush(CamelModel):
    quantity: int
