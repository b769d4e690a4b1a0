# storefront/models/product.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, CheckConstraint, Column
from sqlmodel import SQLModel, Field


class Product(SQLModel, table=True):
    """
    Catalogue entry owned by the admin who created it.

    `quantity` is the live stock counter. Outside of admin edits it is only
    ever changed by the conditional decrement in
    ProductRepository.reserve_stock (checkout reservation).
    """

    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    admin_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
        description="Admin who created (and owns) the product",
    )

    name: str = Field(
        max_length=100,
        index=True,
        description="Display name of the product",
    )

    description: str = Field(
        default="",
        description="Long description",
    )

    quantity: int = Field(
        default=0,
        ge=0,
        description="Units currently in stock",
    )

    price: float = Field(
        gt=0,
        description="Unit price in the deployment currency (major units)",
    )

    sizes: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    colors: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    # Public URLs in Supabase Storage, first one is the primary image
    images: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    @property
    def available(self) -> bool:
        return self.quantity > 0

    @property
    def primary_image_url(self) -> str | None:
        return self.images[0] if self.images else None
