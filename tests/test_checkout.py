"""Tests for checkout: validation, reservation, order creation and payment start."""

import threading
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from conftest import API, SHIPPING_ADDRESS, auth_headers
from storefront.core.config import get_settings
from storefront.core.errors import CheckoutCancelled, EmptyCart, InsufficientStock
from storefront.core.owner import OwnerContext
from storefront.database import engine
from storefront.main import app
from storefront.models.order import Order, OrderItem
from storefront.models.product import Product
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.order_repo import OrderRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.repositories.session_cart_repo import get_session_cart_repo
from storefront.schemas.cart import CartItemCreate
from storefront.schemas.order import CheckoutRequest
from storefront.services.cart_service import CartService
from storefront.services.checkout_service import CheckoutService


def add_to_cart(client, user, product, quantity=1, **options):
    response = client.post(
        f"{API}/cart",
        json={"product_id": str(product.id), "quantity": quantity, **options},
        headers=auth_headers(user),
    )
    assert response.status_code == 200
    return response


def checkout(client, user):
    return client.post(
        f"{API}/checkout",
        json={"shipping_address": SHIPPING_ADDRESS},
        headers=auth_headers(user),
    )


def build_checkout_service(product_repo=None):
    product_repo = product_repo or ProductRepository()
    cart_service = CartService(CartRepository(), get_session_cart_repo(), product_repo)
    return CheckoutService(cart_service, product_repo, OrderRepository(), get_settings())


class TestCheckoutHappyPath:
    def test_creates_pending_order_and_payment_session(
        self, client, customer, make_product, gateway, session
    ):
        shirt = make_product(name="Shirt", price=10.0, quantity=5)
        hat = make_product(name="Hat", price=2.5, quantity=3)
        add_to_cart(client, customer, shirt, 2)
        add_to_cart(client, customer, hat, 1)

        response = checkout(client, customer)

        assert response.status_code == 200
        data = response.json()
        assert data["total_amount"] == 22.5
        assert data["payment_session"] == "created"
        assert data["payment_url"].startswith("https://checkout.paystack.test/")
        assert data["payment_reference"] == "ref_1"
        assert data["guest_id"] is None

        order = session.get(Order, uuid.UUID(data["order_id"]))
        assert order.user_id == customer.id
        assert order.guest_id is None
        assert (order.order_status, order.payment_status) == ("pending", "pending")
        assert order.payment_reference == "ref_1"
        assert order.city == "Lagos"

        items = session.exec(select(OrderItem).where(OrderItem.order_id == order.id)).all()
        assert sorted((it.product_name, it.quantity, it.unit_price) for it in items) == [
            ("Hat", 1, 2.5),
            ("Shirt", 2, 10.0),
        ]

    def test_reserves_stock_and_empties_cart(self, client, customer, make_product, session):
        product = make_product(quantity=5)
        add_to_cart(client, customer, product, 2)

        assert checkout(client, customer).status_code == 200

        session.refresh(product)
        assert product.quantity == 3
        cart = client.get(f"{API}/cart", headers=auth_headers(customer)).json()
        assert cart["items"] == []

    def test_gateway_receives_minor_units_email_and_callback(
        self, client, customer, make_product, gateway
    ):
        product = make_product(price=19.99)
        add_to_cart(client, customer, product, 1)

        order_id = checkout(client, customer).json()["order_id"]

        call = gateway.initialized[0]
        assert call["amount"] == 1999
        assert call["email"] == customer.email
        assert call["callback_url"].endswith(f"{API}/payments/callback/{order_id}")

    def test_order_uses_price_at_checkout(self, client, customer, make_product, session):
        product = make_product(price=10.0)
        add_to_cart(client, customer, product, 1)

        product.price = 12.0
        session.add(product)
        session.commit()

        data = checkout(client, customer).json()
        assert data["total_amount"] == 12.0

    def test_later_price_change_does_not_touch_order(
        self, client, customer, make_product, session
    ):
        product = make_product(price=10.0)
        add_to_cart(client, customer, product, 2)
        order_id = checkout(client, customer).json()["order_id"]

        product.price = 99.0
        session.add(product)
        session.commit()

        detail = client.get(
            f"{API}/orders/{order_id}", headers=auth_headers(customer)
        ).json()
        assert detail["total_amount"] == 20.0
        assert detail["items"][0]["unit_price"] == 10.0
        assert detail["items"][0]["line_total"] == 20.0


class TestCheckoutValidation:
    def test_empty_cart(self, client, customer):
        response = checkout(client, customer)
        assert response.status_code == 400
        assert response.json()["detail"] == "Cart is empty"

    def test_all_or_nothing_on_insufficient_stock(
        self, client, customer, make_product, session, gateway
    ):
        scarce = make_product(name="Scarce", quantity=1)
        plenty = make_product(name="Plenty", quantity=5)
        add_to_cart(client, customer, scarce, 2)
        add_to_cart(client, customer, plenty, 1)

        response = checkout(client, customer)

        assert response.status_code == 400
        assert response.json()["detail"] == "Insufficient stock for Scarce. Available: 1"
        session.refresh(scarce)
        session.refresh(plenty)
        assert scarce.quantity == 1
        assert plenty.quantity == 5
        assert session.exec(select(Order)).all() == []
        assert gateway.initialized == []

        cart = client.get(f"{API}/cart", headers=auth_headers(customer)).json()
        assert cart["item_count"] == 2

    def test_variants_share_one_stock_counter(self, client, customer, make_product):
        product = make_product(name="Tee", quantity=1, sizes=["M", "L"])
        add_to_cart(client, customer, product, 1, size="M")
        add_to_cart(client, customer, product, 1, size="L")

        response = checkout(client, customer)
        assert response.status_code == 400
        assert "Tee" in response.json()["detail"]

    def test_missing_address_field_is_rejected(self, client, customer, make_product):
        product = make_product()
        add_to_cart(client, customer, product)
        address = {**SHIPPING_ADDRESS, "city": "  "}

        response = client.post(
            f"{API}/checkout",
            json={"shipping_address": address},
            headers=auth_headers(customer),
        )
        assert response.status_code == 400


class TestCheckoutGatewayFailures:
    def test_timeout_reports_unknown_session(
        self, client, customer, make_product, gateway, session
    ):
        product = make_product(quantity=2)
        add_to_cart(client, customer, product, 1)
        gateway.time_out()

        response = checkout(client, customer)

        assert response.status_code == 200
        data = response.json()
        assert data["payment_session"] == "unknown"
        assert data["payment_url"] is None
        order = session.get(Order, uuid.UUID(data["order_id"]))
        assert (order.order_status, order.payment_status) == ("pending", "pending")
        session.refresh(product)
        assert product.quantity == 1

    def test_gateway_error_leaves_order_pending(
        self, client, customer, make_product, gateway, session
    ):
        product = make_product(quantity=2)
        add_to_cart(client, customer, product, 1)
        gateway.fail()

        response = checkout(client, customer)

        assert response.status_code == 500
        assert response.json()["detail"] == "Payment provider error"
        orders = session.exec(select(Order)).all()
        assert len(orders) == 1
        assert (orders[0].order_status, orders[0].payment_status) == ("pending", "pending")
        assert orders[0].payment_reference is None
        session.refresh(product)
        assert product.quantity == 1


class TestGuestCheckout:
    def test_guest_checkout_uses_session_cart(self, client, make_product, gateway, session):
        product = make_product(price=5.0, quantity=4)
        client.post(f"{API}/guest/cart", json={"product_id": str(product.id), "quantity": 2})

        response = client.post(
            f"{API}/guest/checkout", json={"shipping_address": SHIPPING_ADDRESS}
        )

        assert response.status_code == 200
        data = response.json()
        guest_id = data["guest_id"]
        assert guest_id
        assert gateway.initialized[0]["email"] == f"{guest_id}@guest.example.com"

        order = session.get(Order, uuid.UUID(data["order_id"]))
        assert order.user_id is None
        assert order.guest_id == guest_id

        assert client.get(f"{API}/guest/cart").json()["items"] == []
        listed = client.get(f"{API}/orders").json()
        assert [o["id"] for o in listed] == [data["order_id"]]

    def test_guest_without_cart_gets_empty_cart_error(self, client):
        response = client.post(
            f"{API}/guest/checkout", json={"shipping_address": SHIPPING_ADDRESS}
        )
        assert response.status_code == 400


class TestCheckoutService:
    def test_cancel_before_reservation_writes_nothing(
        self, customer, make_product, session, gateway
    ):
        product = make_product(quantity=3)
        service = build_checkout_service()
        owner = OwnerContext.for_user(customer)
        service.cart_service.add_item(
            session, owner, CartItemCreate(product_id=product.id, quantity=1)
        )
        cancel_event = threading.Event()
        cancel_event.set()

        with pytest.raises(CheckoutCancelled):
            service.checkout(
                session,
                owner,
                CheckoutRequest(shipping_address=SHIPPING_ADDRESS),
                gateway,
                cancel_event=cancel_event,
            )

        session.refresh(product)
        assert product.quantity == 3
        assert session.exec(select(Order)).all() == []
        assert len(service.cart_service.read(session, owner).items) == 1

    def test_empty_guest_owner_gets_fresh_guest_id(self, session, gateway):
        service = build_checkout_service()
        with pytest.raises(EmptyCart):
            service.checkout(
                session,
                OwnerContext(),
                CheckoutRequest(shipping_address=SHIPPING_ADDRESS),
                gateway,
            )

    def test_only_one_buyer_gets_the_last_unit(
        self, make_user, make_product, session, gateway
    ):
        """
        Both buyers pass validation against stock=1; the second buyer's
        checkout commits in between, so the first one's reservation fails.
        """
        product = make_product(name="Last One", quantity=1)
        first = OwnerContext.for_user(make_user())
        second = OwnerContext.for_user(make_user())
        request = CheckoutRequest(shipping_address=SHIPPING_ADDRESS)

        competitor = build_checkout_service()

        class RacingProductRepository(ProductRepository):
            raced = False

            def reserve_stock(self, session, product_id, quantity):
                if not self.raced:
                    self.raced = True
                    with Session(engine) as other:
                        competitor.checkout(other, second, request, gateway)
                return super().reserve_stock(session, product_id, quantity)

        service = build_checkout_service(RacingProductRepository())
        for owner in (first, second):
            service.cart_service.add_item(
                session, owner, CartItemCreate(product_id=product.id, quantity=1)
            )

        with pytest.raises(InsufficientStock) as excinfo:
            service.checkout(session, first, request, gateway)

        assert excinfo.value.available == 0
        session.expire_all()
        assert session.get(Product, product.id).quantity == 0
        orders = session.exec(select(Order)).all()
        assert [o.user_id for o in orders] == [second.user_id]
        # The losing buyer keeps their cart
        assert len(service.cart_service.read(session, first).items) == 1

    def test_reserves_products_in_id_order(self, customer, make_product, session, gateway):
        reserved = []

        class RecordingProductRepository(ProductRepository):
            def reserve_stock(self, session, product_id, quantity):
                reserved.append(product_id)
                return super().reserve_stock(session, product_id, quantity)

        service = build_checkout_service(RecordingProductRepository())
        owner = OwnerContext.for_user(customer)
        products = [make_product(name=f"P{i}", quantity=5) for i in range(4)]
        for product in reversed(products):
            service.cart_service.add_item(
                session, owner, CartItemCreate(product_id=product.id, quantity=1)
            )

        service.checkout(session, owner, CheckoutRequest(shipping_address=SHIPPING_ADDRESS), gateway)

        assert reserved == sorted(p.id for p in products)

    @pytest.mark.parametrize("as_guest", [False, True])
    def test_items_added_during_checkout_stay_in_cart(
        self, as_guest, customer, make_product, session, gateway
    ):
        shirt = make_product(name="Shirt", quantity=10)
        hat = make_product(name="Hat", quantity=10)
        owner = (
            OwnerContext.for_guest("guest-busy") if as_guest else OwnerContext.for_user(customer)
        )
        competitor = build_checkout_service().cart_service

        class AddingProductRepository(ProductRepository):
            added = False

            def reserve_stock(self, session, product_id, quantity):
                if not self.added:
                    self.added = True
                    with Session(engine) as other:
                        competitor.add_item(
                            other, owner, CartItemCreate(product_id=shirt.id, quantity=2)
                        )
                        competitor.add_item(
                            other, owner, CartItemCreate(product_id=hat.id, quantity=1)
                        )
                return super().reserve_stock(session, product_id, quantity)

        service = build_checkout_service(AddingProductRepository())
        service.cart_service.add_item(
            session, owner, CartItemCreate(product_id=shirt.id, quantity=1)
        )

        service.checkout(session, owner, CheckoutRequest(shipping_address=SHIPPING_ADDRESS), gateway)

        session.expire_all()
        remaining = service.cart_service.read(session, owner).items
        assert sorted((it.product_name, it.quantity) for it in remaining) == [
            ("Hat", 1),
            ("Shirt", 2),
        ]
        items = session.exec(select(OrderItem)).all()
        assert [(it.product_name, it.quantity) for it in items] == [("Shirt", 1)]


class TestCheckoutStorageFailure:
    def test_failed_item_write_rolls_back_reservation(
        self, client, customer, make_product, session, gateway, monkeypatch
    ):
        product = make_product(quantity=5)
        add_to_cart(client, customer, product, 2)

        def broken_create_items(self, session, items):
            raise OperationalError("INSERT INTO order_items", {}, Exception("disk I/O error"))

        monkeypatch.setattr(OrderRepository, "create_items", broken_create_items)
        failing_client = TestClient(app, raise_server_exceptions=False)

        response = failing_client.post(
            f"{API}/checkout",
            json={"shipping_address": SHIPPING_ADDRESS},
            headers=auth_headers(customer),
        )

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error"}
        session.expire_all()
        assert session.get(Product, product.id).quantity == 5
        assert session.exec(select(Order)).all() == []
        assert gateway.initialized == []
        cart = client.get(f"{API}/cart", headers=auth_headers(customer)).json()
        assert [it["quantity"] for it in cart["items"]] == [2]
