# storefront/services/checkout_service.py
import logging
import threading
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from storefront.core.config import Settings
from storefront.core.errors import (
    CheckoutCancelled,
    EmptyCart,
    GatewayError,
    GatewayTimeout,
    InsufficientStock,
    NotFound,
)
from storefront.core.owner import OwnerContext, new_guest_id
from storefront.core.payment_gateway import PaymentGateway, to_minor_units
from storefront.models.order import Order, OrderItem
from storefront.models.product import Product
from storefront.repositories.order_repo import OrderRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.schemas.cart import CartLine
from storefront.schemas.order import CheckoutRequest, CheckoutResult
from storefront.services.cart_service import CartService

logger = logging.getLogger(__name__)


class CheckoutService:
    """
    Turns a cart (persisted or session) into a pending order and a payment
    session.

    Steps:
      1. Read the owner's cart; error if empty.
      2. Re-fetch every product and check live stock for the whole cart.
         Nothing is written until every line has passed.
      3. Reserve stock with conditional decrements.
      4. Create the Order + OrderItems (live prices) in the SAME transaction,
         so any failure rolls the reservation back.
      5. Take the ordered quantities off the cart (later additions stay).
      6. Ask the gateway for a payment session.
      7. Return the redirect URL and reference.

    The caller may cancel (cancel_event) until step 3 starts. From then on
    the checkout runs to completion.

    If step 6 fails the order stays pending/pending with stock reserved.
    A gateway timeout is reported as payment_session="unknown", not as an
    error; the order is never cancelled because of it.
    """

    def __init__(
        self,
        cart_service: CartService,
        product_repo: ProductRepository,
        order_repo: OrderRepository,
        settings: Settings,
    ):
        self.cart_service = cart_service
        self.product_repo = product_repo
        self.order_repo = order_repo
        self.settings = settings

    def checkout(
        self,
        session: Session,
        owner: OwnerContext,
        payload: CheckoutRequest,
        gateway: PaymentGateway,
        cancel_event: threading.Event | None = None,
    ) -> CheckoutResult:
        if owner.user_id is None and owner.guest_id is None:
            owner = OwnerContext.for_guest(new_guest_id())

        # 1) Load cart
        store = self.cart_service.store_for(session, owner)
        lines = store.lines()
        if not lines:
            raise EmptyCart()

        # 2) Validate the whole cart against live stock
        products, demand = self._validate_stock(session, lines)

        if cancel_event is not None and cancel_event.is_set():
            raise CheckoutCancelled()

        # 3) + 4) Reserve and create the order atomically
        order = self._reserve_and_create(session, owner, lines, products, demand, payload)

        # 5) Remove what was ordered from the cart
        store.consume(lines)

        # 6) + 7) Payment session
        return self._start_payment(session, owner, order, gateway)

    # -------- Steps --------

    def _validate_stock(
        self,
        session: Session,
        lines: list[CartLine],
    ) -> tuple[dict[uuid.UUID, Product], dict[uuid.UUID, int]]:
        """
        Returns the live products and the total quantity requested per
        product (several size/color lines may share one stock counter).
        """
        products: dict[uuid.UUID, Product] = {}
        demand: dict[uuid.UUID, int] = {}

        for line in lines:
            if line.product_id not in products:
                product = self.product_repo.get_by_id(session, line.product_id)
                if product is None:
                    raise NotFound(f"Product {line.product_name} not found")
                products[line.product_id] = product
            demand[line.product_id] = demand.get(line.product_id, 0) + line.quantity

        for product_id, quantity in demand.items():
            product = products[product_id]
            if product.quantity < quantity:
                raise InsufficientStock(product.name, product.quantity)

        return products, demand

    def _reserve_and_create(
        self,
        session: Session,
        owner: OwnerContext,
        lines: list[CartLine],
        products: dict[uuid.UUID, Product],
        demand: dict[uuid.UUID, int],
        payload: CheckoutRequest,
    ) -> Order:
        # Snapshot everything needed from the products before any write.
        prices = {pid: p.price for pid, p in products.items()}
        names = {pid: p.name for pid, p in products.items()}
        images = {pid: p.primary_image_url for pid, p in products.items()}
        total_amount = round(sum(prices[ln.product_id] * ln.quantity for ln in lines), 2)
        address = payload.shipping_address

        try:
            # Fixed lock order across concurrent checkouts
            for product_id, quantity in sorted(demand.items()):
                if not self.product_repo.reserve_stock(session, product_id, quantity):
                    # Lost a race with another checkout: undo earlier decrements.
                    session.rollback()
                    current = self.product_repo.get_by_id(session, product_id)
                    available = current.quantity if current is not None else 0
                    logger.info(
                        "Reservation failed for product %s (wanted %d, have %d)",
                        product_id, quantity, available,
                    )
                    raise InsufficientStock(names[product_id], available)

            order = self.order_repo.create_order(
                session,
                Order(
                    user_id=owner.user_id,
                    guest_id=owner.guest_id if owner.user_id is None else None,
                    street=address.street,
                    city=address.city,
                    state=address.state,
                    postal_code=address.postal_code,
                    country=address.country,
                    total_amount=total_amount,
                    payment_status="pending",
                    order_status="pending",
                ),
            )

            self.order_repo.create_items(
                session,
                [
                    OrderItem(
                        order_id=order.id,
                        product_id=ln.product_id,
                        product_name=names[ln.product_id],
                        product_image_url=ln.product_image_url or images[ln.product_id],
                        size=ln.size,
                        color=ln.color,
                        quantity=ln.quantity,
                        unit_price=prices[ln.product_id],
                    )
                    for ln in lines
                ],
            )

            session.commit()
        except SQLAlchemyError:
            session.rollback()
            logger.exception("Checkout storage failure; stock reservation rolled back")
            raise

        session.refresh(order)
        return order

    def _start_payment(
        self,
        session: Session,
        owner: OwnerContext,
        order: Order,
        gateway: PaymentGateway,
    ) -> CheckoutResult:
        settings = self.settings
        email = owner.email or f"{owner.guest_id}@{settings.GUEST_EMAIL_DOMAIN}"
        callback_url = (
            f"{settings.PUBLIC_BASE_URL.rstrip('/')}{settings.API_V1_STR}"
            f"/payments/callback/{order.id}"
        )
        amount_minor = to_minor_units(order.total_amount, settings.CURRENCY_MINOR_UNITS)
        guest_id = owner.guest_id if owner.is_guest else None

        try:
            payment = gateway.initialize(amount_minor, email, callback_url)
        except GatewayTimeout:
            logger.warning(
                "Payment session for order %s unknown: gateway timed out", order.id
            )
            return CheckoutResult(
                message="Order placed. Payment session could not be confirmed yet.",
                order_id=order.id,
                guest_id=guest_id,
                total_amount=order.total_amount,
                payment_session="unknown",
            )
        except GatewayError:
            logger.error(
                "Payment initialization failed for order %s; order left pending",
                order.id,
            )
            raise

        self.order_repo.set_payment_reference(session, order.id, payment.reference)
        session.commit()

        logger.info("Checkout complete: order %s, reference %s", order.id, payment.reference)
        return CheckoutResult(
            message="Checkout successful. Please complete payment.",
            order_id=order.id,
            guest_id=guest_id,
            total_amount=order.total_amount,
            payment_session="created",
            payment_url=payment.redirect_url,
            payment_reference=payment.reference,
        )
