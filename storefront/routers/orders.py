# storefront/routers/orders.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from storefront.core.owner import OwnerContext, get_owner_context
from storefront.database import get_session
from storefront.repositories.order_repo import OrderRepository
from storefront.schemas.order import OrderRead, OrderWithItemsRead
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["Orders"])

order_repo = OrderRepository()
service = OrderService(order_repo)


@router.get("", response_model=list[OrderRead])
def list_my_orders(
    session: Session = Depends(get_session),
    owner: OwnerContext = Depends(get_owner_context),
    skip: int = 0,
    limit: int = 50,
):
    """
    List the caller's orders (without items), newest first.

    Auth:
      - Bearer token => the customer's orders.
      - No token => the orders of the session's guest id.
    """
    return service.list_for_owner(session, owner, skip, limit)


@router.get("/{order_id}", response_model=OrderWithItemsRead)
def get_my_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    owner: OwnerContext = Depends(get_owner_context),
):
    """
    Get a single order (with items) belonging to the caller.
    """
    return service.get_details(session, owner, order_id)


@router.post("/{order_id}/cancel", response_model=OrderRead)
def cancel_my_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    owner: OwnerContext = Depends(get_owner_context),
):
    """
    Cancel a pending order.

      pending -> cancelled

    Anything past pending is rejected.
    """
    return service.cancel(session, owner, order_id)
