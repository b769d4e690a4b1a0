# storefront/services/order_state.py
"""
Order state machine.

Two independent axes:

  payment:      pending -> paid | failed
  fulfillment:  pending -> processing | cancelled
                processing -> shipped
                shipped -> delivered

Guards tying the axes together:
  - pending -> processing requires payment "paid"
  - processing -> shipped and shipped -> delivered require payment "paid"
  - cancelled only from pending

Every writer (payment callback, sweep, customer cancel, admin update)
validates through `check_transition` before issuing the conditional
UPDATE in OrderRepository.transition.
"""

from storefront.core.errors import InvalidState

ORDER_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"processing", "cancelled"},
    "processing": {"shipped"},
    "shipped": {"delivered"},
    "delivered": set(),
    "cancelled": set(),
}

PAYMENT_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"paid", "failed"},
    "paid": set(),
    "failed": set(),
}

# Fulfillment targets that only make sense for a paid order
_REQUIRES_PAYMENT = {"processing", "shipped", "delivered"}


def check_transition(
    order_status: str,
    payment_status: str,
    *,
    to_order_status: str | None = None,
    to_payment_status: str | None = None,
) -> tuple[str, str]:
    """
    Validate a move on either or both axes.

    Unchanged axes (None or equal to the current value) are allowed.

    Returns:
        The resulting (order_status, payment_status) pair.

    Raises:
        InvalidState: if any requested edge is illegal.
    """
    new_order = to_order_status or order_status
    new_payment = to_payment_status or payment_status

    if new_payment != payment_status and new_payment not in PAYMENT_TRANSITIONS.get(
        payment_status, set()
    ):
        raise InvalidState(
            f"Invalid payment status transition: {payment_status} -> {new_payment}"
        )

    if new_order != order_status:
        if new_order not in ORDER_TRANSITIONS.get(order_status, set()):
            raise InvalidState(
                f"Invalid order status transition: {order_status} -> {new_order}"
            )
        if new_order in _REQUIRES_PAYMENT and new_payment != "paid":
            raise InvalidState(
                f"Order cannot move to {new_order} before payment is confirmed"
            )

    return new_order, new_payment


def is_noop(
    order_status: str,
    payment_status: str,
    to_order_status: str | None,
    to_payment_status: str | None,
) -> bool:
    return (to_order_status in (None, order_status)) and (
        to_payment_status in (None, payment_status)
    )
