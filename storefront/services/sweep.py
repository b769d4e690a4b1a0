# storefront/services/sweep.py
"""
Time-based fulfillment sweep.

Paid orders advance on their own when nobody touched them for a while:

  processing --(SHIP_AFTER_DAYS since last update)--> shipped
  shipped    --(DELIVER_AFTER_DAYS since last update)--> delivered

Each order is promoted with its own conditional UPDATE and commit, so two
overlapping sweeps (or a sweep racing an admin edit) cannot double-apply a
transition.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable

from sqlmodel import Session

from storefront.repositories.order_repo import OrderRepository
from storefront.repositories.session_cart_repo import SessionCartRepository
from storefront.services.order_state import check_transition

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    shipped: list[uuid.UUID] = field(default_factory=list)
    delivered: list[uuid.UUID] = field(default_factory=list)


class FulfillmentSweeper:
    def __init__(
        self,
        order_repo: OrderRepository,
        ship_after: timedelta,
        deliver_after: timedelta,
        batch_size: int = 500,
    ):
        self.order_repo = order_repo
        self.rules = (
            ("processing", "shipped", ship_after),
            ("shipped", "delivered", deliver_after),
        )
        for from_status, to_status, _ in self.rules:
            check_transition(from_status, "paid", to_order_status=to_status)
        self.batch_size = batch_size

    def sweep(self, session: Session, now: datetime | None = None) -> SweepReport:
        now = now or datetime.now(timezone.utc)
        report = SweepReport()

        for from_status, to_status, threshold in self.rules:
            cutoff = now - threshold
            promoted = report.shipped if to_status == "shipped" else report.delivered

            # Drain the backlog batch by batch; stop once a batch moves nothing
            while True:
                candidates = self.order_repo.list_stale_ids(
                    session, from_status, "paid", cutoff, limit=self.batch_size
                )
                moved = 0
                for order_id in candidates:
                    changed = self.order_repo.transition(
                        session,
                        order_id,
                        from_order_status=from_status,
                        to_order_status=to_status,
                        from_payment_status="paid",
                        to_payment_status="paid",
                        updated_before=cutoff,
                        now=now,
                    )
                    session.commit()
                    if changed:
                        moved += 1
                        promoted.append(order_id)
                        logger.info("Order %s has been moved to '%s'", order_id, to_status)
                if not moved:
                    break

        return report


async def run_sweep_loop(
    sweeper: FulfillmentSweeper,
    session_factory: Callable[[], Session],
    guest_carts: SessionCartRepository,
    interval_seconds: float,
) -> None:
    """
    Background task started from the app lifespan.

    The sweep itself is blocking DB work, so it runs in a worker thread and
    never stalls request handling. Errors are logged and the loop carries on.
    """
    logger.info("Order status sweep started (every %ss)", interval_seconds)

    while True:
        try:
            report = await asyncio.to_thread(_sweep_once, sweeper, session_factory)
            purged = guest_carts.purge_expired()
            logger.info(
                "Sweep complete: %d shipped, %d delivered, %d guest carts expired",
                len(report.shipped), len(report.delivered), purged,
            )
        except Exception:
            logger.exception("Error during order status sweep")

        await asyncio.sleep(interval_seconds)


def _sweep_once(
    sweeper: FulfillmentSweeper,
    session_factory: Callable[[], Session],
) -> SweepReport:
    with session_factory() as session:
        return sweeper.sweep(session)
