# storefront/schemas/cart.py
import uuid

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel


class CartItemCreate(SQLModel):
    """
    Payload for adding to cart.

    Quantity is range-checked by the service so that both cart backends
    report the same error.
    """

    model_config = ConfigDict(extra="forbid")

    product_id: uuid.UUID
    quantity: int = 1
    size: str | None = None
    color: str | None = None

    @field_validator("size", "color")
    @classmethod
    def normalize_option(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class CartItemUpdate(SQLModel):
    """
    Payload for updating quantity of a cart line.

    size/color pick one variant when the product has several lines.
    """

    model_config = ConfigDict(extra="forbid")

    quantity: int
    size: str | None = None
    color: str | None = None

    @field_validator("size", "color")
    @classmethod
    def normalize_option(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class CartLine(SQLModel):
    """
    Backend-neutral cart line.

    Both the persisted cart and the session cart are read and written in
    terms of this shape. Empty size/color means "no option selected".
    """

    product_id: uuid.UUID
    product_name: str
    product_image_url: str | None = None
    size: str = ""
    color: str = ""
    quantity: int
    unit_price: float

    def same_variant(self, product_id: uuid.UUID, size: str, color: str) -> bool:
        return (
            self.product_id == product_id
            and self.size == size
            and self.color == color
        )


class CartLineRead(SQLModel):
    """
    Read model for a single cart line, including line_total.
    """

    product_id: uuid.UUID
    product_name: str
    product_image_url: str | None = None
    size: str
    color: str
    quantity: int
    unit_price: float
    line_total: float


class CartSummary(SQLModel):
    """
    Full cart response model with totals.
    """

    items: list[CartLineRead]
    item_count: int
    total_quantity: int
    total_price: float
