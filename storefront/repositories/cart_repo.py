# storefront/repositories/cart_repo.py
import uuid

from sqlalchemy import delete, update
from sqlmodel import Session, select

from storefront.models.cart import CartItem


# Conditional UPDATE/DELETE statements skip ORM identity-map syncing;
# callers commit (which expires loaded objects) or refresh explicitly.
_NO_SYNC = {"synchronize_session": False}


class CartRepository:
    """
    Persisted carts (one row per user + product variant).

    Quantity increments are done with a single UPDATE so concurrent
    add-to-cart calls for the same user never lose an increment.
    """

    # Get items for a user
    def list_for_user(self, session: Session, user_id: uuid.UUID) -> list[CartItem]:
        stmt = (
            select(CartItem)
            .where(CartItem.user_id == user_id)
            .order_by(CartItem.created_at, CartItem.id)
        )
        return session.exec(stmt).all()

    def increment(
        self,
        session: Session,
        user_id: uuid.UUID,
        product_id: uuid.UUID,
        size: str,
        color: str,
        quantity: int,
    ) -> bool:
        """Add `quantity` to an existing line; False if there is no such line."""
        stmt = (
            update(CartItem)
            .where(
                CartItem.user_id == user_id,
                CartItem.product_id == product_id,
                CartItem.size == size,
                CartItem.color == color,
            )
            .values(quantity=CartItem.quantity + quantity)
        )
        result = session.execute(stmt, execution_options=_NO_SYNC)
        session.commit()
        return result.rowcount > 0

    def set_quantity(
        self,
        session: Session,
        user_id: uuid.UUID,
        product_id: uuid.UUID,
        size: str,
        color: str,
        quantity: int,
    ) -> bool:
        stmt = (
            update(CartItem)
            .where(
                CartItem.user_id == user_id,
                CartItem.product_id == product_id,
                CartItem.size == size,
                CartItem.color == color,
            )
            .values(quantity=quantity)
        )
        result = session.execute(stmt, execution_options=_NO_SYNC)
        session.commit()
        return result.rowcount > 0

    # CRUD
    def create(self, session: Session, item: CartItem) -> CartItem:
        """
        Insert a new line.

        Raises sqlalchemy IntegrityError if a concurrent request inserted
        the same variant first; the caller retries with `increment`.
        """
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    def delete_lines(
        self,
        session: Session,
        user_id: uuid.UUID,
        product_id: uuid.UUID,
        size: str | None = None,
        color: str | None = None,
    ) -> int:
        stmt = delete(CartItem).where(
            CartItem.user_id == user_id,
            CartItem.product_id == product_id,
        )
        if size is not None:
            stmt = stmt.where(CartItem.size == size)
        if color is not None:
            stmt = stmt.where(CartItem.color == color)
        result = session.execute(stmt, execution_options=_NO_SYNC)
        session.commit()
        return result.rowcount

    def consume(
        self,
        session: Session,
        user_id: uuid.UUID,
        product_id: uuid.UUID,
        size: str,
        color: str,
        quantity: int,
    ) -> None:
        """
        Take `quantity` off a line, dropping it once nothing is left.

        Whatever was added to the line after it was read stays in the cart.
        Does NOT commit.
        """
        match = (
            CartItem.user_id == user_id,
            CartItem.product_id == product_id,
            CartItem.size == size,
            CartItem.color == color,
        )
        session.execute(
            delete(CartItem).where(*match, CartItem.quantity <= quantity),
            execution_options=_NO_SYNC,
        )
        session.execute(
            update(CartItem)
            .where(*match, CartItem.quantity > quantity)
            .values(quantity=CartItem.quantity - quantity),
            execution_options=_NO_SYNC,
        )

    def clear_user_cart(self, session: Session, user_id: uuid.UUID) -> None:
        session.execute(
            delete(CartItem).where(CartItem.user_id == user_id),
            execution_options=_NO_SYNC,
        )
        session.commit()

    def delete_for_product(self, session: Session, product_id: uuid.UUID) -> None:
        """Drop every cart line pointing at a product. Does NOT commit."""
        session.execute(
            delete(CartItem).where(CartItem.product_id == product_id),
            execution_options=_NO_SYNC,
        )
