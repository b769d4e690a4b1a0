# storefront/services/order_service.py
import logging
import uuid

from sqlmodel import Session

from storefront.core.errors import Forbidden, InvalidState, NotFound
from storefront.core.owner import OwnerContext
from storefront.models.order import Order, OrderItem
from storefront.repositories.order_repo import OrderRepository
from storefront.schemas.order import (
    OrderItemRead,
    OrderStatusUpdate,
    OrderWithItemsRead,
)
from storefront.services.order_state import check_transition, is_noop

logger = logging.getLogger(__name__)


class OrderService:
    """
    Business logic for orders after checkout.

    Responsibilities:
      - owner-scoped listing, detail and cancellation
      - admin listing, detail, status update and deletion
      - every status change goes through order_state.check_transition
        and a conditional update (apply_transition)
    """

    def __init__(self, order_repo: OrderRepository):
        self.order_repo = order_repo

    # -------- Transitions --------

    def apply_transition(
        self,
        session: Session,
        order: Order,
        *,
        to_order_status: str | None = None,
        to_payment_status: str | None = None,
        payment_reference: str | None = None,
    ) -> bool:
        """
        Validate and persist a status change for `order`.

        Returns:
            True if this call changed the row, False if it was a no-op or
            another writer got there first. `order` is refreshed either way.

        Raises:
            InvalidState: if the requested edge is illegal.
        """
        current_order, current_payment = order.order_status, order.payment_status
        if is_noop(current_order, current_payment, to_order_status, to_payment_status):
            return False

        new_order, new_payment = check_transition(
            current_order,
            current_payment,
            to_order_status=to_order_status,
            to_payment_status=to_payment_status,
        )
        changed = self.order_repo.transition(
            session,
            order.id,
            from_order_status=current_order,
            to_order_status=new_order,
            from_payment_status=current_payment,
            to_payment_status=new_payment,
            payment_reference=payment_reference,
        )
        session.commit()
        session.refresh(order)

        if changed:
            logger.info(
                "Order %s: %s/%s -> %s/%s",
                order.id, current_order, current_payment, new_order, new_payment,
            )
        return changed

    def _require_change(
        self,
        session: Session,
        order: Order,
        **kwargs,
    ) -> None:
        if not self.apply_transition(session, order, **kwargs):
            raise InvalidState(
                f"Order was modified concurrently; it is now "
                f"{order.order_status}/{order.payment_status}"
            )

    # -------- Owner-facing operations --------

    def list_for_owner(
        self,
        session: Session,
        owner: OwnerContext,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        """
        List the owner's orders (without items), newest first.
        """
        return self.order_repo.list_for_owner(
            session,
            user_id=owner.user_id,
            guest_id=owner.guest_id,
            skip=skip,
            limit=limit,
        )

    def get_details(
        self,
        session: Session,
        owner: OwnerContext,
        order_id: uuid.UUID,
    ) -> OrderWithItemsRead:
        """
        Get a single order with items.

        - 404 if order not found or does not belong to this owner.
        """
        order = self.order_repo.get_by_id(session, order_id)
        if not order or not owner.owns(order.user_id, order.guest_id):
            raise NotFound("Order not found")
        return self._build_order_with_items_dto(session, order)

    def cancel(
        self,
        session: Session,
        owner: OwnerContext,
        order_id: uuid.UUID,
    ) -> Order:
        """
        Cancel an order that has not started fulfillment.

        Reserved stock is NOT returned to the product.
        """
        order = self.order_repo.get_by_id(session, order_id)
        if not order:
            raise NotFound("Order not found")
        if not owner.owns(order.user_id, order.guest_id):
            raise Forbidden("You do not own this order")
        if order.order_status != "pending":
            raise InvalidState(
                f"Only pending orders can be cancelled (order is {order.order_status})"
            )

        self._require_change(session, order, to_order_status="cancelled")
        return order

    # -------- Admin operations --------

    def list_all(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        order_status: str | None = None,
        payment_status: str | None = None,
    ) -> list[Order]:
        return self.order_repo.list_all(
            session,
            skip=skip,
            limit=limit,
            order_status=order_status,
            payment_status=payment_status,
        )

    def _get_or_404(self, session: Session, order_id: uuid.UUID) -> Order:
        order = self.order_repo.get_by_id(session, order_id)
        if not order:
            raise NotFound("Order not found")
        return order

    def get_admin(self, session: Session, order_id: uuid.UUID) -> OrderWithItemsRead:
        return self._build_order_with_items_dto(session, self._get_or_404(session, order_id))

    def update_status(
        self,
        session: Session,
        order_id: uuid.UUID,
        payload: OrderStatusUpdate,
    ) -> Order:
        """
        Admin status update, validated by the same state machine as the
        payment callback and the sweep. Setting the current value is a no-op.
        """
        order = self._get_or_404(session, order_id)
        if is_noop(
            order.order_status,
            order.payment_status,
            payload.order_status,
            payload.payment_status,
        ):
            return order

        self._require_change(
            session,
            order,
            to_order_status=payload.order_status,
            to_payment_status=payload.payment_status,
        )
        return order

    def delete(self, session: Session, order_id: uuid.UUID) -> None:
        """
        Hard-delete an order and its items (admin only).

        Reserved stock is NOT returned to the product.
        """
        order = self._get_or_404(session, order_id)
        self.order_repo.delete_order(session, order)
        session.commit()
        logger.info("Order %s deleted by admin", order_id)

    # -------- Helper DTO builder --------

    def _build_order_with_items_dto(
        self,
        session: Session,
        order: Order,
    ) -> OrderWithItemsRead:
        items: list[OrderItem] = self.order_repo.list_items_for_order(session, order.id)
        item_dtos = [
            OrderItemRead(
                id=it.id,
                order_id=it.order_id,
                product_id=it.product_id,
                product_name=it.product_name,
                product_image_url=it.product_image_url,
                size=it.size,
                color=it.color,
                quantity=it.quantity,
                unit_price=it.unit_price,
                line_total=it.quantity * it.unit_price,
            )
            for it in items
        ]
        return OrderWithItemsRead(
            **order.model_dump(),
            items=item_dtos,
        )
