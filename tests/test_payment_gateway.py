"""Tests for the Paystack adapter, against a mocked HTTP transport."""

import json

import httpx
import pytest

from storefront.core.errors import GatewayError, GatewayTimeout
from storefront.core.payment_gateway import PaystackGateway


def gateway_with(handler) -> PaystackGateway:
    client = httpx.Client(
        base_url="https://api.paystack.test",
        transport=httpx.MockTransport(handler),
        headers={"Authorization": "Bearer sk_test"},
    )
    return PaystackGateway(secret_key="sk_test", client=client)


class TestInitialize:
    def test_posts_amount_email_and_callback(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(
                200,
                json={
                    "status": True,
                    "data": {
                        "authorization_url": "https://checkout.paystack.com/abc",
                        "reference": "abc",
                    },
                },
            )

        session = gateway_with(handler).initialize(
            5000, "buyer@example.com", "https://shop.example.com/cb"
        )

        assert session.redirect_url == "https://checkout.paystack.com/abc"
        assert session.reference == "abc"
        assert seen["path"] == "/transaction/initialize"
        assert seen["body"] == {
            "amount": 5000,
            "email": "buyer@example.com",
            "callback_url": "https://shop.example.com/cb",
        }
        assert seen["auth"] == "Bearer sk_test"

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(GatewayTimeout):
            gateway_with(handler).initialize(100, "a@example.com", "https://cb")

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(GatewayError):
            gateway_with(handler).initialize(100, "a@example.com", "https://cb")

    def test_rejected_request(self):
        def handler(request):
            return httpx.Response(400, json={"status": False, "message": "Invalid key"})

        with pytest.raises(GatewayError) as excinfo:
            gateway_with(handler).initialize(100, "a@example.com", "https://cb")
        assert "Invalid key" not in excinfo.value.detail

    def test_non_json_response(self):
        def handler(request):
            return httpx.Response(502, text="<html>bad gateway</html>")

        with pytest.raises(GatewayError):
            gateway_with(handler).initialize(100, "a@example.com", "https://cb")


class TestVerify:
    @pytest.mark.parametrize(
        "provider_status, expected",
        [
            ("success", "success"),
            ("failed", "failed"),
            ("abandoned", "failed"),
            ("reversed", "failed"),
            ("ongoing", "pending"),
            ("pending", "pending"),
        ],
    )
    def test_maps_provider_states(self, provider_status, expected):
        def handler(request):
            assert request.url.path == "/transaction/verify/ref_9"
            return httpx.Response(
                200,
                json={
                    "status": True,
                    "data": {"status": provider_status, "reference": "ref_9", "amount": 700},
                },
            )

        result = gateway_with(handler).verify("ref_9")

        assert result.status == expected
        assert result.reference == "ref_9"
        assert result.amount_minor == 700
