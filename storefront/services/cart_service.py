# storefront/services/cart_service.py
import logging
import uuid
from abc import ABC, abstractmethod

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from storefront.core.errors import NotFound, ValidationError
from storefront.core.owner import OwnerContext
from storefront.models.cart import CartItem
from storefront.models.product import Product
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.repositories.session_cart_repo import SessionCartRepository
from storefront.schemas.cart import (
    CartItemCreate,
    CartItemUpdate,
    CartLine,
    CartLineRead,
    CartSummary,
)

logger = logging.getLogger(__name__)


# ---- Storage adapters ----


class CartStore(ABC):
    """
    One owner's cart, whatever it is stored in.

    Implementations must serialize writes per owner so that concurrent
    increments are never lost.
    """

    @abstractmethod
    def lines(self) -> list[CartLine]:
        """Current lines, in insertion order. Empty if no cart exists."""

    @abstractmethod
    def add(self, line: CartLine) -> None:
        """Increment the matching variant's quantity, or append `line`."""

    @abstractmethod
    def set_quantity(self, product_id: uuid.UUID, size: str, color: str, quantity: int) -> bool:
        """False if the variant is not in the cart."""

    @abstractmethod
    def remove(self, product_id: uuid.UUID, size: str | None, color: str | None) -> int:
        """Remove matching lines (None matches any option). Returns count removed."""

    @abstractmethod
    def clear(self) -> None:
        """Empty the cart. Never fails."""

    @abstractmethod
    def consume(self, ordered: list[CartLine]) -> None:
        """Take the ordered quantities off the cart; later additions stay."""


class PersistentCartStore(CartStore):
    """Cart rows in the database, written through on every call."""

    def __init__(self, session: Session, user_id: uuid.UUID, repo: CartRepository):
        self.session = session
        self.user_id = user_id
        self.repo = repo

    def lines(self) -> list[CartLine]:
        return [
            CartLine(
                product_id=row.product_id,
                product_name=row.product_name,
                product_image_url=row.product_image_url,
                size=row.size,
                color=row.color,
                quantity=row.quantity,
                unit_price=row.unit_price,
            )
            for row in self.repo.list_for_user(self.session, self.user_id)
        ]

    def add(self, line: CartLine) -> None:
        args = (self.session, self.user_id, line.product_id, line.size, line.color)
        if self.repo.increment(*args, line.quantity):
            return
        try:
            self.repo.create(
                self.session,
                CartItem(user_id=self.user_id, **line.model_dump()),
            )
        except IntegrityError:
            self.session.rollback()
            logger.info(
                "Cart line for user %s / product %s inserted concurrently; incrementing",
                self.user_id, line.product_id,
            )
            if not self.repo.increment(*args, line.quantity):
                raise

    def set_quantity(self, product_id: uuid.UUID, size: str, color: str, quantity: int) -> bool:
        return self.repo.set_quantity(
            self.session, self.user_id, product_id, size, color, quantity
        )

    def remove(self, product_id: uuid.UUID, size: str | None, color: str | None) -> int:
        return self.repo.delete_lines(self.session, self.user_id, product_id, size, color)

    def clear(self) -> None:
        self.repo.clear_user_cart(self.session, self.user_id)

    def consume(self, ordered: list[CartLine]) -> None:
        for line in ordered:
            self.repo.consume(
                self.session,
                self.user_id,
                line.product_id,
                line.size,
                line.color,
                line.quantity,
            )
        self.session.commit()


class SessionCartStore(CartStore):
    """Guest cart kept for the lifetime of the session; not durable."""

    def __init__(self, guest_id: str, repo: SessionCartRepository):
        self.guest_id = guest_id
        self.repo = repo

    def lines(self) -> list[CartLine]:
        return self.repo.list_lines(self.guest_id)

    def add(self, line: CartLine) -> None:
        with self.repo.locked(self.guest_id) as lines:
            for existing in lines:
                if existing.same_variant(line.product_id, line.size, line.color):
                    existing.quantity += line.quantity
                    return
            lines.append(line.model_copy())

    def set_quantity(self, product_id: uuid.UUID, size: str, color: str, quantity: int) -> bool:
        with self.repo.locked(self.guest_id) as lines:
            for existing in lines:
                if existing.same_variant(product_id, size, color):
                    existing.quantity = quantity
                    return True
        return False

    def remove(self, product_id: uuid.UUID, size: str | None, color: str | None) -> int:
        with self.repo.locked(self.guest_id) as lines:
            keep = [
                line
                for line in lines
                if not (
                    line.product_id == product_id
                    and (size is None or line.size == size)
                    and (color is None or line.color == color)
                )
            ]
            removed = len(lines) - len(keep)
            lines[:] = keep
        return removed

    def clear(self) -> None:
        self.repo.clear(self.guest_id)

    def consume(self, ordered: list[CartLine]) -> None:
        with self.repo.locked(self.guest_id) as lines:
            for line in ordered:
                for existing in lines:
                    if existing.same_variant(line.product_id, line.size, line.color):
                        existing.quantity -= line.quantity
                        break
            lines[:] = [line for line in lines if line.quantity > 0]


# ---- Service ----


class CartService:
    """
    Business logic for cart operations, identical for users and guests.

    Responsibilities:
      - pick the storage adapter for the owner (DB rows vs. session)
      - validate product existence, quantity and size/color options
      - snapshot name, price and primary image when a line is added
      - compute line totals and cart totals
    """

    def __init__(
        self,
        cart_repo: CartRepository,
        session_cart_repo: SessionCartRepository,
        product_repo: ProductRepository,
    ):
        self.cart_repo = cart_repo
        self.session_cart_repo = session_cart_repo
        self.product_repo = product_repo

    def store_for(self, session: Session, owner: OwnerContext) -> CartStore:
        if owner.user_id is not None:
            return PersistentCartStore(session, owner.user_id, self.cart_repo)
        if owner.guest_id is None:
            raise ValueError("owner context has neither user_id nor guest_id")
        return SessionCartStore(owner.guest_id, self.session_cart_repo)

    # ---- internal helpers ----

    def _get_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.product_repo.get_by_id(session, product_id)
        if not product:
            raise NotFound("Product not found")
        return product

    @staticmethod
    def _check_quantity(quantity: int, minimum: int = 1) -> None:
        if quantity < minimum:
            raise ValidationError(f"Quantity must be at least {minimum}")

    @staticmethod
    def _check_option(kind: str, value: str | None, allowed: list[str]) -> str:
        if value is None:
            return ""
        if allowed and value not in allowed:
            raise ValidationError(
                f"Invalid {kind} '{value}'. Choose one of: {', '.join(allowed)}"
            )
        return value

    @staticmethod
    def summarize(lines: list[CartLine]) -> CartSummary:
        items = [
            CartLineRead(**line.model_dump(), line_total=line.unit_price * line.quantity)
            for line in lines
        ]
        return CartSummary(
            items=items,
            item_count=len(items),
            total_quantity=sum(it.quantity for it in items),
            total_price=sum(it.line_total for it in items),
        )

    def _pick_line(
        self,
        lines: list[CartLine],
        product_id: uuid.UUID,
        size: str | None,
        color: str | None,
    ) -> CartLine:
        matches = [
            line
            for line in lines
            if line.product_id == product_id
            and (size is None or line.size == size)
            and (color is None or line.color == color)
        ]
        if not matches:
            raise NotFound("Item not in cart")
        if len(matches) > 1:
            raise ValidationError(
                "Several variants of this product are in the cart; specify size/color"
            )
        return matches[0]

    # ---- public operations ----

    def read(self, session: Session, owner: OwnerContext) -> CartSummary:
        """Cart lines plus totals; an empty summary if there is no cart yet."""
        return self.summarize(self.store_for(session, owner).lines())

    def add_item(
        self,
        session: Session,
        owner: OwnerContext,
        payload: CartItemCreate,
    ) -> CartSummary:
        """
        Add a product variant to the cart.

        Rules:
          - product must exist
          - quantity >= 1
          - size/color must be one of the product's options (when it has any)
          - an existing line for the same (product, size, color) is
            incremented, keeping the price captured when it was first added
        """
        self._check_quantity(payload.quantity)
        product = self._get_product(session, payload.product_id)
        size = self._check_option("size", payload.size, product.sizes)
        color = self._check_option("color", payload.color, product.colors)

        store = self.store_for(session, owner)
        store.add(
            CartLine(
                product_id=product.id,
                product_name=product.name,
                product_image_url=product.primary_image_url,
                size=size,
                color=color,
                quantity=payload.quantity,
                unit_price=product.price,
            )
        )
        return self.summarize(store.lines())

    def update_item(
        self,
        session: Session,
        owner: OwnerContext,
        product_id: uuid.UUID,
        payload: CartItemUpdate,
    ) -> CartSummary:
        """Set the quantity of one cart line (>= 1)."""
        self._check_quantity(payload.quantity)
        store = self.store_for(session, owner)
        line = self._pick_line(store.lines(), product_id, payload.size, payload.color)

        if not store.set_quantity(line.product_id, line.size, line.color, payload.quantity):
            raise NotFound("Item not in cart")
        return self.summarize(store.lines())

    def remove_item(
        self,
        session: Session,
        owner: OwnerContext,
        product_id: uuid.UUID,
        size: str | None = None,
        color: str | None = None,
    ) -> CartSummary:
        """
        Remove a product from the cart.

        Without size/color every variant of the product goes. Removing
        something that is not in the cart is a 404, not a silent no-op.
        """
        store = self.store_for(session, owner)
        if store.remove(product_id, size, color) == 0:
            raise NotFound("Item not found in cart")
        return self.summarize(store.lines())

    def clear(self, session: Session, owner: OwnerContext) -> CartSummary:
        """
        Clear all items from the cart and return an empty summary.
        """
        self.store_for(session, owner).clear()
        return self.summarize([])
