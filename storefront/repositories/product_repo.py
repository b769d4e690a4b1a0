# storefront/repositories/product_repo.py
import uuid

from sqlalchemy import update
from sqlmodel import Session, select

from storefront.models.order import OrderItem
from storefront.models.product import Product


# Conditional UPDATE/DELETE statements skip ORM identity-map syncing;
# callers commit (which expires loaded objects) or refresh explicitly.
_NO_SYNC = {"synchronize_session": False}


class ProductRepository:
    """
    Data access layer for Product.

    - Pure DB operations (CRUD + queries).
    - No FastAPI, no business logic.
    """

    def get_by_id(self, session: Session, product_id: uuid.UUID) -> Product | None:
        return session.get(Product, product_id)

    def list_products(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        admin_id: uuid.UUID | None = None,
    ) -> list[Product]:
        stmt = select(Product)
        if admin_id is not None:
            stmt = stmt.where(Product.admin_id == admin_id)
        stmt = stmt.order_by(Product.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def create(self, session: Session, product: Product) -> Product:
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    def update(self, session: Session, product: Product) -> Product:
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    def delete(self, session: Session, product: Product) -> None:
        session.delete(product)
        session.commit()

    def is_referenced_by_orders(self, session: Session, product_id: uuid.UUID) -> bool:
        stmt = select(OrderItem.id).where(OrderItem.product_id == product_id).limit(1)
        return session.exec(stmt).first() is not None

    # ----- Reservation -----

    def reserve_stock(
        self,
        session: Session,
        product_id: uuid.UUID,
        quantity: int,
    ) -> bool:
        """
        Decrement stock by `quantity` only if at least that much is left.

        Single conditional UPDATE, so two concurrent reservations can never
        both take the last unit. Does NOT commit: the caller owns the
        transaction and rolls it back if any later step fails.

        Returns:
            True if the row was decremented, False if stock was too low
            (or the product vanished).
        """
        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.quantity >= quantity)
            .values(quantity=Product.quantity - quantity)
        )
        result = session.execute(stmt, execution_options=_NO_SYNC)
        return result.rowcount == 1
