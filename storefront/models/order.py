# storefront/models/order.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint
from sqlmodel import SQLModel, Field


class Order(SQLModel, table=True):
    """
    Customer order.

    Owner is either a registered user (user_id) or a guest (guest_id),
    never both. Two independent status axes:

      payment_status: pending | paid | failed
      order_status:   pending | processing | shipped | delivered | cancelled

    Status columns are only written through OrderRepository's conditional
    updates (see services/order_state.py for the legal edges).
    """

    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint(
            "(user_id IS NULL) != (guest_id IS NULL)",
            name="ck_orders_single_owner",
        ),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="users.id",
        index=True,
    )

    guest_id: str | None = Field(
        default=None,
        index=True,
        description="Session guest id for unauthenticated checkouts",
    )

    # Shipping address, all mandatory
    street: str
    city: str
    state: str
    postal_code: str
    country: str

    total_amount: float = Field(
        description="Sum of line totals, computed once at creation",
    )

    payment_status: str = Field(
        default="pending",
        index=True,
    )

    order_status: str = Field(
        default="pending",
        index=True,
    )

    payment_reference: str | None = Field(
        default=None,
        unique=True,
        index=True,
        description="Gateway transaction reference; settles at most one order",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
        description="Last status change (UTC)",
    )


class OrderItem(SQLModel, table=True):
    """
    Frozen line item inside an order.

    Copies name, variant and price at checkout time so later product edits
    never change a historical order.
    """

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    product_name: str
    product_image_url: str | None = None
    size: str = ""
    color: str = ""

    quantity: int = Field(
        gt=0,
        description="Quantity ordered (>=1)",
    )

    unit_price: float = Field(
        description="Unit price at time of order",
    )
