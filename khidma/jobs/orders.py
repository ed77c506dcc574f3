# khidma/jobs/orders.py
"""
Orphaned food order reconciliation.

Order intake writes the order row before the hosted checkout exists. A client
who never completes, or never reaches, the checkout leaves the row pending
with no payment hold; this job closes such rows once they are old enough.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from khidma.domain import OrderStatus, PaymentStatus
from khidma.infra.db import db
from khidma.models import FoodOrder
from khidma.services.payments import checkout_lifetime_minutes
from khidma.services.structured_logging import get_logger
from khidma.utils.clock import utcnow

logger = get_logger('khidma.jobs.orders')

ABANDONED_REASON = "checkout_abandoned"

# Margin past the Checkout Session's own expiry before the row is touched
EXPIRY_GRACE = timedelta(minutes=5)


def reconcile_orphaned_orders(now: Optional[datetime] = None, ttl_minutes: int = 60,
                              session=None) -> int:
    """
    Cancel pending, unpaid orders older than ttl_minutes.

    An order is only touched once its hosted checkout has expired on Stripe's
    side, so a client can no longer pay for a row this job has cancelled.

    Returns:
        Number of orders reconciled
    """
    session = session or db.session
    now = now or utcnow()
    age = max(ttl_minutes, checkout_lifetime_minutes(ttl_minutes))
    cutoff = now - timedelta(minutes=age) - EXPIRY_GRACE

    stale = (
        session.query(FoodOrder)
        .filter(FoodOrder.status == OrderStatus.PENDING.value)
        .filter(FoodOrder.payment_status == PaymentStatus.PENDING.value)
        .filter(FoodOrder.created_at < cutoff)
        .all()
    )
    for order in stale:
        order.status = OrderStatus.CANCELLED.value
        order.payment_status = PaymentStatus.FAILED.value
        order.failure_reason = ABANDONED_REASON
    session.commit()

    logger.info(
        f"Reconciled {len(stale)} orphaned orders",
        event_type='job',
        job='reconcile_orphaned_orders',
        reconciled=len(stale),
        order_ids=[o.id for o in stale],
    )
    return len(stale)
