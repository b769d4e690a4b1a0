# storefront/services/payment_service.py
import logging
import uuid

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from storefront.core.config import Settings
from storefront.core.errors import NotFound, ValidationError
from storefront.core.payment_gateway import PaymentGateway, to_minor_units
from storefront.models.order import Order
from storefront.repositories.order_repo import OrderRepository
from storefront.schemas.order import PaymentCallbackResult
from storefront.services.order_service import OrderService

logger = logging.getLogger(__name__)


class PaymentService:
    """
    Handles the gateway's redirect/callback for an order.

    The status carried by the callback request is never trusted: the
    reference is re-verified with the gateway server-side. A reference
    settles one order only, and only for exactly its total. Replays are
    no-ops once the payment is settled (paid or failed).
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        order_service: OrderService,
        settings: Settings,
    ):
        self.order_repo = order_repo
        self.order_service = order_service
        self.settings = settings

    @staticmethod
    def _result(order: Order, verified_status: str) -> PaymentCallbackResult:
        return PaymentCallbackResult(
            order_id=order.id,
            payment_status=order.payment_status,
            order_status=order.order_status,
            verified_status=verified_status,
        )

    def handle_callback(
        self,
        session: Session,
        order_id: uuid.UUID,
        reference: str,
        gateway: PaymentGateway,
    ) -> PaymentCallbackResult:
        reference = reference.strip()
        if not reference:
            raise ValidationError("Missing payment reference")

        order = self.order_repo.get_by_id(session, order_id)
        if not order:
            raise NotFound("Order not found")

        if order.payment_reference and order.payment_reference != reference:
            logger.warning(
                "Callback for order %s with foreign reference %s", order.id, reference
            )
            raise ValidationError("Payment reference does not match this order")

        if order.payment_status != "pending":
            # Already settled: replay
            settled = "success" if order.payment_status == "paid" else "failed"
            return self._result(order, settled)

        owner_of_reference = self.order_repo.get_by_reference(session, reference)
        if owner_of_reference is not None and owner_of_reference.id != order.id:
            logger.warning(
                "Reference %s already belongs to order %s; rejected for order %s",
                reference, owner_of_reference.id, order.id,
            )
            raise ValidationError("Payment reference does not match this order")

        verification = gateway.verify(reference)
        logger.info(
            "Payment %s for order %s verified as %s",
            reference, order.id, verification.status,
        )

        if verification.status == "pending":
            return self._result(order, "pending")

        expected = to_minor_units(order.total_amount, self.settings.CURRENCY_MINOR_UNITS)
        if verification.amount_minor != expected:
            logger.warning(
                "Payment %s for order %s charged %s, expected %d; ignored",
                reference, order.id, verification.amount_minor, expected,
            )
            raise ValidationError("Payment amount does not match this order")

        try:
            if verification.status == "success":
                to_order_status = "processing" if order.order_status == "pending" else None
                if order.order_status == "cancelled":
                    logger.warning(
                        "Payment %s confirmed for cancelled order %s; refund needed",
                        reference, order.id,
                    )
                self.order_service.apply_transition(
                    session,
                    order,
                    to_order_status=to_order_status,
                    to_payment_status="paid",
                    payment_reference=reference,
                )
            else:
                self.order_service.apply_transition(
                    session,
                    order,
                    to_payment_status="failed",
                    payment_reference=reference,
                )
        except IntegrityError:
            # Another order stored the same reference in the meantime
            session.rollback()
            logger.warning("Reference %s claimed concurrently by another order", reference)
            raise ValidationError("Payment reference does not match this order")

        # apply_transition refreshed the order; a concurrent replay that won
        # the race leaves the same settled state behind.
        return self._result(order, verification.status)
