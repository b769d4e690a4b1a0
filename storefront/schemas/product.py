# storefront/schemas/product.py
import uuid
from datetime import datetime

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field


def _clean_options(values: list[str] | None) -> list[str] | None:
    """Strip, drop empties and de-duplicate while keeping order."""
    if values is None:
        return None
    seen: list[str] = []
    for raw in values:
        v = raw.strip()
        if v and v not in seen:
            seen.append(v)
    return seen


class ProductCreate(SQLModel):
    """
    Payload for creating a product (admin only).

    Images are uploaded separately via POST /products/{id}/images.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(max_length=100)
    description: str = ""
    quantity: int = Field(default=0, ge=0)
    price: float = Field(gt=0)
    sizes: list[str] = []
    colors: list[str] = []

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v

    @field_validator("sizes", "colors")
    @classmethod
    def clean_options(cls, v: list[str]) -> list[str]:
        return _clean_options(v)


class ProductUpdate(SQLModel):
    """
    Partial update payload for products.
    All fields are optional.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=100)
    description: str | None = None
    quantity: int | None = Field(default=None, ge=0)
    price: float | None = Field(default=None, gt=0)
    sizes: list[str] | None = None
    colors: list[str] | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v

    @field_validator("sizes", "colors")
    @classmethod
    def clean_options(cls, v: list[str] | None) -> list[str] | None:
        return _clean_options(v)


class ProductRead(SQLModel):
    """
    Product representation for clients.
    """

    id: uuid.UUID
    admin_id: uuid.UUID
    name: str
    description: str
    quantity: int
    price: float
    sizes: list[str]
    colors: list[str]
    images: list[str]
    available: bool
    created_at: datetime
