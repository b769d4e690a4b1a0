# storefront/routers/checkout.py
import asyncio
import threading

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from sqlmodel import Session

from storefront.core.config import get_settings
from storefront.core.owner import GUEST_SESSION_KEY, OwnerContext, get_customer_context
from storefront.core.payment_gateway import PaymentGateway, get_payment_gateway
from storefront.database import get_session
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.order_repo import OrderRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.repositories.session_cart_repo import get_session_cart_repo
from storefront.schemas.order import CheckoutRequest, CheckoutResult
from storefront.services.cart_service import CartService
from storefront.services.checkout_service import CheckoutService

router = APIRouter(tags=["Checkout"])

product_repo = ProductRepository()
cart_service = CartService(CartRepository(), get_session_cart_repo(), product_repo)
service = CheckoutService(cart_service, product_repo, OrderRepository(), get_settings())

DISCONNECT_POLL_SECONDS = 0.05


async def _watch_disconnect(request: Request, cancel_event: threading.Event) -> None:
    while not cancel_event.is_set():
        if await request.is_disconnected():
            cancel_event.set()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


async def _run_checkout(
    request: Request,
    session: Session,
    owner: OwnerContext,
    payload: CheckoutRequest,
    gateway: PaymentGateway,
) -> CheckoutResult:
    """
    Run the blocking checkout in the threadpool while watching the client.

    A client that disconnects before stock reservation starts cancels the
    checkout with nothing written.
    """
    cancel_event = threading.Event()
    watcher = asyncio.create_task(_watch_disconnect(request, cancel_event))
    try:
        return await run_in_threadpool(
            service.checkout, session, owner, payload, gateway, cancel_event
        )
    finally:
        watcher.cancel()


@router.post("/checkout", response_model=CheckoutResult)
async def checkout(
    request: Request,
    payload: CheckoutRequest,
    session: Session = Depends(get_session),
    owner: OwnerContext = Depends(get_customer_context),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Create an order from the current user's cart and start payment.

    Auth:
      - Only role='user' (customer) can checkout.
    """
    return await _run_checkout(request, session, owner, payload, gateway)


@router.post("/guest/checkout", response_model=CheckoutResult)
async def guest_checkout(
    request: Request,
    payload: CheckoutRequest,
    session: Session = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Create an order from the session cart. The guest id is kept in the
    session so the guest can look the order up afterwards.
    """
    owner = OwnerContext.for_guest(request.session.get(GUEST_SESSION_KEY))
    result = await _run_checkout(request, session, owner, payload, gateway)
    request.session[GUEST_SESSION_KEY] = result.guest_id
    return result
