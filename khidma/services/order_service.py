# -*- coding: utf-8 -*-
"""
Food order escrow flow.

Order intake opens a manual-capture payment hold for a new order; the dual
confirmation gate records the client and cook confirmations and releases the
held funds once both are persisted.

Both operations are stateless: every decision is taken from what is stored in
the database at the time of the call, because the two confirmations may
arrive in separate requests, seconds or days apart.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from khidma.domain import (
    CLOSED_ORDER_STATUSES,
    ConfirmationRole,
    OrderStatus,
    PaymentStatus,
    parse_enum,
)
from khidma.middleware.errors import (
    AuthorizationError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from khidma.models import FoodDish, FoodOrder, User
from khidma.services.metrics import get_metrics_service
from khidma.services.pricing import (
    DEFAULT_PLATFORM_FEE_PERCENT,
    calculate_breakdown,
    to_minor_units,
)
from khidma.services.payments import checkout_lifetime_minutes
from khidma.services.structured_logging import get_flow_logger
from khidma.utils.clock import isoformat, utcnow

intake_log = get_flow_logger('create-food-order')
confirm_log = get_flow_logger('confirm-order-delivery')


@dataclass
class OrderRequest:
    dish_id: str
    quantity: int
    delivery_address: Optional[str] = None
    delivery_notes: Optional[str] = None
    scheduled_delivery_at: Optional[datetime] = None


def _metrics(action: str):
    metrics = get_metrics_service()
    if metrics is not None:
        getattr(metrics, action)()


def build_receipt(order: FoodOrder, completed_at: datetime) -> Dict[str, Any]:
    """Immutable snapshot of what was bought and how the money was split."""
    return {
        'order_id': order.id,
        'dish_name': order.dish.name if order.dish else None,
        'quantity': order.quantity,
        'unit_price': float(order.unit_price),
        'total_amount': float(order.total_amount),
        'platform_fee': float(order.platform_fee),
        'cook_amount': float(order.cook_amount),
        'completed_at': isoformat(completed_at),
    }


class OrderService:
    """Order intake and dual confirmation, over an injected session and gateway."""

    def __init__(self, session, payments, fee_percent=DEFAULT_PLATFORM_FEE_PERCENT,
                 site_url: str = "", checkout_ttl_minutes: int = 60):
        self.session = session
        self.payments = payments
        self.fee_percent = fee_percent
        self.site_url = site_url.rstrip('/')
        self.checkout_ttl_minutes = checkout_ttl_minutes

    # ------------------------------------------------------------------
    # Order intake
    # ------------------------------------------------------------------

    def create_order(self, user: User, req: OrderRequest, origin: Optional[str] = None) -> Dict[str, Any]:
        intake_log.step("Function started", user_id=user.id, dish_id=req.dish_id,
                        quantity=req.quantity)

        dish = self.session.get(FoodDish, req.dish_id)
        if dish is None:
            raise NotFoundError("Dish not found")
        if not dish.is_available:
            raise ValidationError("Dish is not available")

        try:
            breakdown = calculate_breakdown(dish.price, req.quantity, self.fee_percent)
        except ValueError as e:
            raise ValidationError(str(e))
        intake_log.step("Amounts calculated", total_amount=breakdown.total_amount,
                        platform_fee=breakdown.platform_fee, cook_amount=breakdown.cook_amount)

        customer_id = self.payments.ensure_customer(user.email, metadata={'user_id': user.id})
        intake_log.step("Stripe customer ready", customer_id=customer_id)

        order = FoodOrder(
            client_id=user.id,
            cook_id=dish.cook_id,
            dish_id=dish.id,
            delivery_address=req.delivery_address,
            delivery_notes=req.delivery_notes,
            scheduled_delivery_at=req.scheduled_delivery_at,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            **breakdown.as_columns(),
        )
        self.session.add(order)
        self.session.commit()
        intake_log.step("Order created", order_id=order.id)

        base = (origin or self.site_url).rstrip('/')
        lifetime = timedelta(minutes=checkout_lifetime_minutes(self.checkout_ttl_minutes))
        cook_name = (dish.cook.user.full_name if dish.cook and dish.cook.user else None) or 'طاهية'
        try:
            checkout = self.payments.create_order_checkout(
                customer_id=customer_id,
                amount_minor=to_minor_units(breakdown.total_amount),
                product_name=dish.name,
                description=f"{breakdown.quantity}x {dish.name} - {cook_name}",
                metadata={
                    'order_id': order.id,
                    'cook_id': dish.cook_id,
                    **breakdown.as_metadata(),
                },
                success_url=f"{base}/order-success?order_id={order.id}",
                cancel_url=f"{base}/home-cooking",
                expires_at=int((utcnow() + lifetime).timestamp()),
            )
            order.stripe_checkout_session_id = checkout.id
            intent_id = getattr(checkout, 'payment_intent', None)
            if intent_id:
                order.stripe_payment_intent_id = intent_id
            self.session.commit()
        except UpstreamError as e:
            self._fail_intake(order, e.message)
            raise

        intake_log.step("Checkout session created", order_id=order.id, session_id=checkout.id)
        _metrics('record_order_created')
        return {
            'url': checkout.url,
            'order_id': order.id,
            'session_id': checkout.id,
        }

    def _fail_intake(self, order: FoodOrder, reason: str):
        """Compensate a half-finished intake so the row never sits in pending."""
        self.session.rollback()
        order.status = OrderStatus.FAILED.value
        order.payment_status = PaymentStatus.FAILED.value
        order.failure_reason = reason
        self.session.commit()
        intake_log.failure(reason, order_id=order.id)
        _metrics('record_intake_failure')

    # ------------------------------------------------------------------
    # Dual confirmation gate
    # ------------------------------------------------------------------

    def confirm_delivery(self, user: User, order_id: str, role_value: str) -> Dict[str, Any]:
        if not order_id or not role_value:
            raise ValidationError("Missing required fields: order_id, role")
        role = parse_enum(ConfirmationRole, role_value)
        if role is None:
            raise ValidationError("Invalid role")
        confirm_log.step("Request parsed", order_id=order_id, role=role.value)

        order = self.session.get(FoodOrder, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        if not order.is_party(user.id, role):
            raise AuthorizationError(f"Unauthorized: Not the {role.value}")
        if order.status in CLOSED_ORDER_STATUSES:
            raise ValidationError("Order is not payable")

        setattr(order, role.timestamp_field, utcnow())
        self.session.commit()
        confirm_log.step("Confirmation updated", order_id=order.id, role=role.value)

        # Decide from persisted state, never from what this call just wrote
        self.session.refresh(order)

        if order.escrow_released:
            confirm_log.step("Escrow already released", order_id=order.id)
            return self._released_response(order)

        if order.both_confirmed:
            # Only a held payment can be released
            if order.payment_status == PaymentStatus.AUTHORIZED.value:
                confirm_log.step("Both parties confirmed, releasing escrow", order_id=order.id)
                self._release(order)
                return self._released_response(order)
            confirm_log.step("Both parties confirmed, payment not authorized yet",
                             order_id=order.id, payment_status=order.payment_status)

        return {
            'success': True,
            'message': f"{role.label} confirmation recorded",
            'client_confirmed': order.client_confirmed_at is not None,
            'cook_confirmed': order.cook_confirmed_at is not None,
            'escrow_released': False,
        }

    def _release(self, order: FoodOrder):
        if order.stripe_payment_intent_id:
            try:
                self.payments.capture_payment(order.stripe_payment_intent_id)
                confirm_log.step("Payment captured successfully", order_id=order.id)
            except UpstreamError as e:
                # Typically already captured; the order is finalized regardless
                confirm_log.step("Stripe capture error", order_id=order.id, error_message=e.message)
                _metrics('record_capture_failure')

        now = utcnow()
        order.status = OrderStatus.COMPLETED.value
        order.payment_status = PaymentStatus.RELEASED.value
        order.escrow_released_at = now
        order.receipt_generated_at = now
        order.receipt_data = build_receipt(order, now)
        self.session.commit()
        confirm_log.step("Order completed and escrow released", order_id=order.id)
        _metrics('record_escrow_release')

    @staticmethod
    def _released_response(order: FoodOrder) -> Dict[str, Any]:
        return {
            'success': True,
            'message': "Order completed, payment released",
            'client_confirmed': True,
            'cook_confirmed': True,
            'escrow_released': True,
            'receipt': order.receipt_data,
        }
