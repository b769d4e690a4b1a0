# storefront/routers/payments.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from storefront.core.config import get_settings
from storefront.core.payment_gateway import PaymentGateway, get_payment_gateway
from storefront.database import get_session
from storefront.repositories.order_repo import OrderRepository
from storefront.schemas.order import PaymentCallbackResult
from storefront.services.order_service import OrderService
from storefront.services.payment_service import PaymentService

router = APIRouter(prefix="/payments", tags=["Payments"])

order_repo = OrderRepository()
service = PaymentService(order_repo, OrderService(order_repo), get_settings())


@router.get("/callback/{order_id}", response_model=PaymentCallbackResult)
def payment_callback(
    order_id: uuid.UUID,
    reference: str = "",
    trxref: str = "",
    session: Session = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Redirect target after the hosted payment page.

    The provider appends `reference` (and the legacy `trxref`). The outcome
    is always re-verified with the provider, never taken from the query.
    Replays of a settled order return the stored result.
    """
    return service.handle_callback(session, order_id, reference or trxref, gateway)
