# storefront/routers/admin_orders.py
import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from storefront.core.auth import require_admin
from storefront.database import get_session
from storefront.repositories.order_repo import OrderRepository
from storefront.schemas.order import (
    OrderRead,
    OrderStatus,
    OrderStatusUpdate,
    OrderWithItemsRead,
    PaymentStatus,
)
from storefront.services.order_service import OrderService

router = APIRouter(
    prefix="/admin/orders",
    tags=["Admin orders"],
    dependencies=[Depends(require_admin)],
)

order_repo = OrderRepository()
service = OrderService(order_repo)


@router.get("", response_model=list[OrderRead])
def list_all_orders(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
    order_status: OrderStatus | None = None,
    payment_status: PaymentStatus | None = None,
):
    """
    List all orders (admin only), optionally filtered by status.
    """
    return service.list_all(
        session,
        skip=skip,
        limit=limit,
        order_status=order_status,
        payment_status=payment_status,
    )


@router.get("/{order_id}", response_model=OrderWithItemsRead)
def get_order_admin(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Get any order with items (admin only).
    """
    return service.get_admin(session, order_id)


@router.patch("/{order_id}/status", response_model=OrderRead)
def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    session: Session = Depends(get_session),
):
    """
    Update order and/or payment status (admin only).

      pending    -> processing (requires paid), cancelled

      processing -> shipped

      shipped    -> delivered

      payment pending -> paid, failed

    """
    return service.update_status(session, order_id, payload)


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Hard-delete an order and its items (admin only).
    """
    service.delete(session, order_id)
    return None
