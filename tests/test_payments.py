"""Tests for the payment callback."""

import uuid

from conftest import API, SHIPPING_ADDRESS, auth_headers
from storefront.models.order import Order


def place_order(client, customer, make_product, quantity=1):
    product = make_product(quantity=5)
    client.post(
        f"{API}/cart",
        json={"product_id": str(product.id), "quantity": quantity},
        headers=auth_headers(customer),
    )
    response = client.post(
        f"{API}/checkout",
        json={"shipping_address": SHIPPING_ADDRESS},
        headers=auth_headers(customer),
    )
    assert response.status_code == 200
    return response.json()


def callback(client, order_id, reference):
    return client.get(f"{API}/payments/callback/{order_id}", params={"reference": reference})


class TestPaymentCallback:
    def test_success_marks_paid_and_processing(
        self, client, customer, make_product, gateway, session
    ):
        placed = place_order(client, customer, make_product)

        response = callback(client, placed["order_id"], placed["payment_reference"])

        assert response.status_code == 200
        data = response.json()
        assert data["payment_status"] == "paid"
        assert data["order_status"] == "processing"
        assert data["verified_status"] == "success"
        assert gateway.verified == [placed["payment_reference"]]

        order = session.get(Order, uuid.UUID(placed["order_id"]))
        assert (order.order_status, order.payment_status) == ("processing", "paid")

    def test_replay_is_a_noop(self, client, customer, make_product, gateway):
        placed = place_order(client, customer, make_product)
        callback(client, placed["order_id"], placed["payment_reference"])

        response = callback(client, placed["order_id"], placed["payment_reference"])

        assert response.status_code == 200
        assert response.json()["payment_status"] == "paid"
        assert len(gateway.verified) == 1

    def test_failed_payment(self, client, customer, make_product, gateway, session):
        placed = place_order(client, customer, make_product)
        gateway.verify_status = "failed"

        response = callback(client, placed["order_id"], placed["payment_reference"])

        assert response.json()["payment_status"] == "failed"
        order = session.get(Order, uuid.UUID(placed["order_id"]))
        assert (order.order_status, order.payment_status) == ("pending", "failed")

    def test_pending_verification_changes_nothing(
        self, client, customer, make_product, gateway, session
    ):
        placed = place_order(client, customer, make_product)
        gateway.verify_status = "pending"

        response = callback(client, placed["order_id"], placed["payment_reference"])

        assert response.json()["verified_status"] == "pending"
        order = session.get(Order, uuid.UUID(placed["order_id"]))
        assert (order.order_status, order.payment_status) == ("pending", "pending")

    def test_reference_mismatch_is_rejected(self, client, customer, make_product, gateway):
        placed = place_order(client, customer, make_product)

        response = callback(client, placed["order_id"], "someone_elses_ref")

        assert response.status_code == 400
        assert gateway.verified == []

    def test_missing_reference(self, client, customer, make_product):
        placed = place_order(client, customer, make_product)
        response = client.get(f"{API}/payments/callback/{placed['order_id']}")
        assert response.status_code == 400

    def test_trxref_is_accepted(self, client, customer, make_product):
        placed = place_order(client, customer, make_product)
        response = client.get(
            f"{API}/payments/callback/{placed['order_id']}",
            params={"trxref": placed["payment_reference"]},
        )
        assert response.json()["payment_status"] == "paid"

    def test_unknown_order(self, client):
        response = callback(client, uuid.uuid4(), "ref_1")
        assert response.status_code == 404

    def test_paid_after_cancel_keeps_order_cancelled(
        self, client, customer, make_product, session
    ):
        placed = place_order(client, customer, make_product)
        cancel = client.post(
            f"{API}/orders/{placed['order_id']}/cancel", headers=auth_headers(customer)
        )
        assert cancel.status_code == 200

        response = callback(client, placed["order_id"], placed["payment_reference"])

        data = response.json()
        assert data["order_status"] == "cancelled"
        assert data["payment_status"] == "paid"

    def test_timed_out_checkout_can_still_be_settled(
        self, client, customer, make_product, gateway
    ):
        gateway.time_out()
        placed = place_order(client, customer, make_product)
        assert placed["payment_reference"] is None

        # The provider still redirects with the reference it minted
        response = callback(client, placed["order_id"], "late_ref")

        assert response.status_code == 200
        assert response.json()["payment_status"] == "paid"

    def test_underpaid_transaction_is_rejected(
        self, client, customer, make_product, gateway, session
    ):
        gateway.time_out()
        placed = place_order(client, customer, make_product)
        gateway.verify_amount = 1

        response = callback(client, placed["order_id"], "cheap_ref")

        assert response.status_code == 400
        order = session.get(Order, uuid.UUID(placed["order_id"]))
        assert (order.order_status, order.payment_status) == ("pending", "pending")
        assert order.payment_reference is None

    def test_reference_of_another_order_is_rejected(
        self, client, customer, make_product, gateway, session
    ):
        first = place_order(client, customer, make_product)
        assert callback(client, first["order_id"], first["payment_reference"]).status_code == 200

        gateway.time_out()
        second = place_order(client, customer, make_product)
        gateway.verified.clear()

        response = callback(client, second["order_id"], first["payment_reference"])

        assert response.status_code == 400
        assert gateway.verified == []
        order = session.get(Order, uuid.UUID(second["order_id"]))
        assert (order.order_status, order.payment_status) == ("pending", "pending")
