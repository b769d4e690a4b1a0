# storefront/routers/cart.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from storefront.core.owner import OwnerContext, get_customer_context, get_guest_context
from storefront.database import get_session
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.repositories.session_cart_repo import get_session_cart_repo
from storefront.schemas.cart import CartItemCreate, CartItemUpdate, CartSummary
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["Cart"])
guest_router = APIRouter(prefix="/guest/cart", tags=["Guest cart"])

cart_repo = CartRepository()
product_repo = ProductRepository()
service = CartService(cart_repo, get_session_cart_repo(), product_repo)


# -------- Customer cart (persisted) --------


@router.get("", response_model=CartSummary)
def get_my_cart(
    session: Session = Depends(get_session),
    owner: OwnerContext = Depends(get_customer_context),
):
    """
    Get current user's cart summary.

    Auth:
      - Only role='user' (customer) can access.
      - Admins are forbidden.
    """
    return service.read(session, owner)


@router.post("", response_model=CartSummary)
def add_to_cart(
    payload: CartItemCreate,
    session: Session = Depends(get_session),
    owner: OwnerContext = Depends(get_customer_context),
):
    """
    Add a product variant to the current user's cart.

    Adding the same product/size/color again increments the existing line.
    """
    return service.add_item(session, owner, payload)


@router.patch("/items/{product_id}", response_model=CartSummary)
def update_cart_item(
    product_id: uuid.UUID,
    payload: CartItemUpdate,
    session: Session = Depends(get_session),
    owner: OwnerContext = Depends(get_customer_context),
):
    """
    Set the quantity of a cart line.
    """
    return service.update_item(session, owner, product_id, payload)


@router.delete("/items/{product_id}", response_model=CartSummary)
def remove_cart_item(
    product_id: uuid.UUID,
    size: str | None = None,
    color: str | None = None,
    session: Session = Depends(get_session),
    owner: OwnerContext = Depends(get_customer_context),
):
    """
    Remove a product from the cart (every variant unless size/color given).
    """
    return service.remove_item(session, owner, product_id, size=size, color=color)


@router.delete("", response_model=CartSummary)
def clear_cart(
    session: Session = Depends(get_session),
    owner: OwnerContext = Depends(get_customer_context),
):
    """
    Clear the entire cart.

    Returns an empty cart summary.
    """
    return service.clear(session, owner)


# -------- Guest cart (session) --------


@guest_router.get("", response_model=CartSummary)
def get_guest_cart(
    session: Session = Depends(get_session),
    owner: OwnerContext = Depends(get_guest_context),
):
    """
    Get the session cart. No login required; the guest id lives in the
    signed session cookie.
    """
    return service.read(session, owner)


@guest_router.post("", response_model=CartSummary)
def add_to_guest_cart(
    payload: CartItemCreate,
    session: Session = Depends(get_session),
    owner: OwnerContext = Depends(get_guest_context),
):
    return service.add_item(session, owner, payload)


@guest_router.patch("/items/{product_id}", response_model=CartSummary)
def update_guest_cart_item(
    product_id: uuid.UUID,
    payload: CartItemUpdate,
    session: Session = Depends(get_session),
    owner: OwnerContext = Depends(get_guest_context),
):
    return service.update_item(session, owner, product_id, payload)


@guest_router.delete("/items/{product_id}", response_model=CartSummary)
def remove_guest_cart_item(
    product_id: uuid.UUID,
    size: str | None = None,
    color: str | None = None,
    session: Session = Depends(get_session),
    owner: OwnerContext = Depends(get_guest_context),
):
    return service.remove_item(session, owner, product_id, size=size, color=color)


@guest_router.delete("", response_model=CartSummary)
def clear_guest_cart(
    session: Session = Depends(get_session),
    owner: OwnerContext = Depends(get_guest_context),
):
    return service.clear(session, owner)
