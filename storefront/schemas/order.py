# storefront/schemas/order.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator, model_validator
from sqlmodel import SQLModel

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
PaymentStatus = Literal["pending", "paid", "failed"]
PaymentSessionState = Literal["created", "unknown"]


class ShippingAddress(SQLModel):
    """
    Shipping address for checkout. Every field is mandatory.
    """

    model_config = ConfigDict(extra="forbid")

    street: str
    city: str
    state: str
    postal_code: str
    country: str

    @field_validator("street", "city", "state", "postal_code", "country")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v


class CheckoutRequest(SQLModel):
    """
    Payload for turning the current cart into an order.

    Backend derives:
      - owner (user id from token, or session guest id)
      - statuses = pending/pending
      - items and total_amount from the cart + live product prices
    """

    model_config = ConfigDict(extra="forbid")

    shipping_address: ShippingAddress


class CheckoutResult(SQLModel):
    """
    Checkout response.

    payment_session="unknown" means the gateway timed out: the order exists
    (pending/pending, stock reserved) but no redirect URL is available yet.
    """

    message: str
    order_id: uuid.UUID
    guest_id: str | None = None
    total_amount: float
    payment_session: PaymentSessionState
    payment_url: str | None = None
    payment_reference: str | None = None


class OrderRead(SQLModel):
    """
    Lightweight representation of an order (without items).
    """

    id: uuid.UUID
    user_id: uuid.UUID | None
    guest_id: str | None
    street: str
    city: str
    state: str
    postal_code: str
    country: str
    total_amount: float
    payment_status: PaymentStatus
    order_status: OrderStatus
    payment_reference: str | None
    created_at: datetime
    updated_at: datetime


class OrderItemRead(SQLModel):
    """
    Representation of a single order line item.
    """

    id: uuid.UUID
    order_id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    product_image_url: str | None
    size: str
    color: str
    quantity: int
    unit_price: float
    line_total: float


class OrderWithItemsRead(OrderRead):
    """
    Full order view including items.
    """

    items: list[OrderItemRead]


class OrderStatusUpdate(SQLModel):
    """
    Admin payload to move an order along either status axis.
    """

    model_config = ConfigDict(extra="forbid")

    order_status: OrderStatus | None = None
    payment_status: PaymentStatus | None = None

    @model_validator(mode="after")
    def at_least_one(self) -> "OrderStatusUpdate":
        if self.order_status is None and self.payment_status is None:
            raise ValueError("order_status or payment_status is required")
        return self


class PaymentCallbackResult(SQLModel):
    """
    Outcome of a payment callback after server-side verification.
    """

    order_id: uuid.UUID
    payment_status: PaymentStatus
    order_status: OrderStatus
    verified_status: Literal["success", "failed", "pending"]
