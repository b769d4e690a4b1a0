# storefront/repositories/order_repo.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import delete, update
from sqlmodel import Session, select

from storefront.models.order import Order, OrderItem


# Conditional UPDATE/DELETE statements skip ORM identity-map syncing;
# callers commit (which expires loaded objects) or refresh explicitly.
_NO_SYNC = {"synchronize_session": False}


class OrderRepository:
    """
    Data access layer for orders and order_items.

    NOTE:
      - No commits here; checkout and status changes are multi-step
        transactions. The service is responsible for session.commit().
      - Status columns are only written by `transition`, a conditional
        UPDATE that succeeds only if the row is still in the expected state.
    """

    # ---- Orders ----

    def list_for_owner(
        self,
        session: Session,
        user_id: uuid.UUID | None = None,
        guest_id: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        stmt = select(Order)
        if user_id is not None:
            stmt = stmt.where(Order.user_id == user_id)
        else:
            stmt = stmt.where(Order.guest_id == guest_id)
        stmt = stmt.order_by(Order.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def list_all(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        order_status: str | None = None,
        payment_status: str | None = None,
    ) -> list[Order]:
        stmt = select(Order)
        if order_status is not None:
            stmt = stmt.where(Order.order_status == order_status)
        if payment_status is not None:
            stmt = stmt.where(Order.payment_status == payment_status)
        stmt = stmt.order_by(Order.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def get_by_id(self, session: Session, order_id: uuid.UUID) -> Order | None:
        return session.get(Order, order_id)

    def get_by_reference(self, session: Session, reference: str) -> Order | None:
        stmt = select(Order).where(Order.payment_reference == reference)
        return session.exec(stmt).first()

    def list_stale_ids(
        self,
        session: Session,
        order_status: str,
        payment_status: str,
        updated_before: datetime,
        limit: int = 500,
    ) -> list[uuid.UUID]:
        """Ids of orders sitting in a state since before `updated_before`."""
        stmt = (
            select(Order.id)
            .where(
                Order.order_status == order_status,
                Order.payment_status == payment_status,
                Order.updated_at <= updated_before,
            )
            .order_by(Order.updated_at)
            .limit(limit)
        )
        return session.exec(stmt).all()

    def create_order(self, session: Session, order: Order) -> Order:
        """
        Insert an Order without committing, but ensure id is populated.
        """
        session.add(order)
        session.flush()  # Assign PK
        session.refresh(order)
        return order

    def transition(
        self,
        session: Session,
        order_id: uuid.UUID,
        *,
        from_order_status: str,
        to_order_status: str,
        from_payment_status: str,
        to_payment_status: str,
        updated_before: datetime | None = None,
        payment_reference: str | None = None,
        now: datetime | None = None,
    ) -> bool:
        """
        Move an order from one (order_status, payment_status) pair to another.

        The WHERE clause pins the expected current state, so a concurrent
        writer (callback replay, overlapping sweep, admin edit) makes this a
        no-op instead of a lost update.

        Returns:
            True if exactly this call changed the row.
        """
        stmt = update(Order).where(
            Order.id == order_id,
            Order.order_status == from_order_status,
            Order.payment_status == from_payment_status,
        )
        if updated_before is not None:
            stmt = stmt.where(Order.updated_at <= updated_before)

        values = {
            "order_status": to_order_status,
            "payment_status": to_payment_status,
            "updated_at": now or datetime.now(timezone.utc),
        }
        if payment_reference is not None:
            values["payment_reference"] = payment_reference

        result = session.execute(stmt.values(**values), execution_options=_NO_SYNC)
        return result.rowcount == 1

    def set_payment_reference(
        self,
        session: Session,
        order_id: uuid.UUID,
        reference: str,
    ) -> bool:
        """Record the gateway reference once; never overwrites an existing one."""
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.payment_reference.is_(None))
            .values(payment_reference=reference)
        )
        result = session.execute(stmt, execution_options=_NO_SYNC)
        return result.rowcount == 1

    def delete_order(self, session: Session, order: Order) -> None:
        session.execute(
            delete(OrderItem).where(OrderItem.order_id == order.id),
            execution_options=_NO_SYNC,
        )
        session.delete(order)

    # ---- Order items ----

    def list_items_for_order(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> list[OrderItem]:
        stmt = select(OrderItem).where(OrderItem.order_id == order_id)
        return session.exec(stmt).all()

    def create_items(
        self,
        session: Session,
        items: list[OrderItem],
    ) -> list[OrderItem]:
        session.add_all(items)
        session.flush()
        for item in items:
            session.refresh(item)
        return items
