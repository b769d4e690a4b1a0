# storefront/core/payment_gateway.py
"""
Payment gateway adapter.

The core only needs two calls:

  initialize(amount_minor, email, callback_url) -> PaymentSession
  verify(reference)                             -> PaymentVerification

PaystackGateway implements them against the Paystack REST API with httpx.
Amounts are always in the smallest currency unit (kobo, cents, ...).
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Literal

import httpx

from storefront.core.config import get_settings
from storefront.core.errors import GatewayError, GatewayTimeout

logger = logging.getLogger(__name__)

VerifiedStatus = Literal["success", "failed", "pending"]

# Paystack transaction states that will never turn into a success
_FINAL_FAILURE_STATES = {"failed", "abandoned", "reversed"}


def to_minor_units(amount: float, units: int) -> int:
    """Order total (major units) as the integer amount the provider charges."""
    return int(round(amount * units))


@dataclass(frozen=True)
class PaymentSession:
    redirect_url: str
    reference: str


@dataclass(frozen=True)
class PaymentVerification:
    status: VerifiedStatus
    reference: str
    amount_minor: int | None = None
    raw: dict[str, Any] = field(default_factory=dict)


class PaymentGateway(ABC):
    @abstractmethod
    def initialize(self, amount_minor: int, email: str, callback_url: str) -> PaymentSession:
        """Create a hosted payment session."""

    @abstractmethod
    def verify(self, reference: str) -> PaymentVerification:
        """Ask the provider for the verified state of a transaction."""


class PaystackGateway(PaymentGateway):
    """
    Paystack client.

    Raises:
        GatewayTimeout: the provider did not answer within `timeout` seconds.
        GatewayError: transport failure or a non-successful API response.
    """

    def __init__(
        self,
        secret_key: str,
        base_url: str = "https://api.paystack.co",
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ):
        self._client = client or httpx.Client(
            base_url=base_url,
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {secret_key}",
                "Content-Type": "application/json",
            },
        )

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("Paystack %s %s timed out", method, path)
            raise GatewayTimeout() from exc
        except httpx.HTTPError as exc:
            logger.error("Paystack %s %s failed: %s", method, path, exc)
            raise GatewayError() from exc

        try:
            body = response.json()
        except ValueError as exc:
            logger.error(
                "Paystack %s %s returned non-JSON (HTTP %s)",
                method, path, response.status_code,
            )
            raise GatewayError() from exc

        if response.status_code >= 400 or not body.get("status"):
            logger.error(
                "Paystack %s %s rejected (HTTP %s): %s",
                method, path, response.status_code, body.get("message"),
            )
            raise GatewayError()

        return body.get("data") or {}

    def initialize(self, amount_minor: int, email: str, callback_url: str) -> PaymentSession:
        data = self._request(
            "POST",
            "/transaction/initialize",
            json={
                "amount": amount_minor,
                "email": email,
                "callback_url": callback_url,
            },
        )
        try:
            return PaymentSession(
                redirect_url=data["authorization_url"],
                reference=data["reference"],
            )
        except KeyError as exc:
            logger.error("Paystack initialize response missing %s", exc)
            raise GatewayError() from exc

    def verify(self, reference: str) -> PaymentVerification:
        data = self._request("GET", f"/transaction/verify/{reference}")
        state = data.get("status")
        if state == "success":
            status: VerifiedStatus = "success"
        elif state in _FINAL_FAILURE_STATES:
            status = "failed"
        else:
            # ongoing / pending / processing / queued
            status = "pending"
        return PaymentVerification(
            status=status,
            reference=data.get("reference", reference),
            amount_minor=data.get("amount"),
            raw=data,
        )


@lru_cache
def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency: process-wide Paystack client built from settings."""
    settings = get_settings()
    return PaystackGateway(
        secret_key=settings.PAYSTACK_SECRET_KEY,
        base_url=settings.PAYSTACK_BASE_URL,
        timeout=settings.PAYMENT_TIMEOUT_SECONDS,
    )
