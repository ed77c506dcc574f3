# -*- coding: utf-8 -*-
"""
Stripe Webhook Handler.

Keeps orders and provider subscriptions in step with Stripe:
- checkout.session.completed: the order's payment hold is authorized
- checkout.session.expired: the order's checkout was abandoned
- customer.subscription.created / updated / deleted: mirror subscription state
"""
import stripe
from flask import Blueprint, current_app, jsonify, request

from khidma.domain import CLOSED_ORDER_STATUSES, OrderStatus, PaymentStatus, ProviderType
from khidma.infra.db import db
from khidma.models import FoodOrder
from khidma.services.payments import field, get_payments_gateway, subscription_period_end
from khidma.services.structured_logging import get_logger
from khidma.utils.clock import from_unix

logger = get_logger('khidma.webhooks')

stripe_webhooks_bp = Blueprint('stripe_webhooks', __name__)


@stripe_webhooks_bp.route('/webhooks/stripe', methods=['POST'])
def stripe_webhook():
    """Verify and dispatch a Stripe webhook event."""
    payload = request.data
    sig_header = request.headers.get('Stripe-Signature')
    webhook_secret = current_app.config.get('STRIPE_WEBHOOK_SECRET')

    if not webhook_secret:
        logger.error("STRIPE_WEBHOOK_SECRET not configured")
        return jsonify({'error': 'Webhook not configured'}), 500

    try:
        event = get_payments_gateway().construct_event(payload, sig_header, webhook_secret)
    except ValueError:
        logger.error("Invalid webhook payload")
        return jsonify({'error': 'Invalid payload'}), 400
    except stripe.SignatureVerificationError:
        logger.error("Invalid webhook signature")
        return jsonify({'error': 'Invalid signature'}), 400

    event_type = field(event, 'type')
    data = field(field(event, 'data'), 'object')
    logger.info(f"Received Stripe webhook: {event_type}", event_type_name=event_type)

    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        logger.info(f"Unhandled event type: {event_type}")
    else:
        handler(data)

    return jsonify({'status': 'success'}), 200


def _order_for_session(session_obj):
    order_id = field(field(session_obj, 'metadata'), 'order_id')
    if not order_id:
        return None
    return db.session.get(FoodOrder, order_id)


def handle_checkout_completed(session_obj):
    """The client finished the hosted checkout; funds are now held."""
    order = _order_for_session(session_obj)
    if order is None:
        return

    intent_id = field(session_obj, 'payment_intent')
    if order.status in CLOSED_ORDER_STATUSES:
        _void_late_hold(order, intent_id)
        return

    if intent_id and not order.stripe_payment_intent_id:
        order.stripe_payment_intent_id = intent_id
    if order.payment_status == PaymentStatus.PENDING.value:
        order.payment_status = PaymentStatus.AUTHORIZED.value
    if order.status == OrderStatus.PENDING.value:
        order.status = OrderStatus.PAID.value
    db.session.commit()
    logger.info("Order payment authorized", order_id=order.id, payment_intent=intent_id)


def _void_late_hold(order, intent_id):
    """A payment completed for an order that was already closed; release the hold."""
    if intent_id:
        get_payments_gateway().cancel_payment(intent_id)
        order.stripe_payment_intent_id = intent_id
        db.session.commit()
    logger.warning("Payment hold voided for closed order", order_id=order.id,
                   order_status=order.status, payment_intent=intent_id)


def handle_checkout_expired(session_obj):
    order = _order_for_session(session_obj)
    if order is None or order.status != OrderStatus.PENDING.value:
        return
    order.status = OrderStatus.CANCELLED.value
    order.payment_status = PaymentStatus.FAILED.value
    order.failure_reason = "checkout_expired"
    db.session.commit()
    logger.info("Order checkout expired", order_id=order.id)


def handle_subscription_changed(subscription):
    """Mirror Stripe's view of a subscription onto every matching provider row."""
    customer_id = field(subscription, 'customer')
    status = field(subscription, 'status')
    ends_at = from_unix(subscription_period_end(subscription))

    updated = 0
    for provider_type in ProviderType:
        model = provider_type.model
        for provider in model.query.filter_by(stripe_customer_id=customer_id).all():
            provider.mirror_subscription(status, field(subscription, 'id'), ends_at)
            updated += 1
    db.session.commit()

    if not updated:
        logger.warning(f"No provider found for Stripe customer {customer_id}")
    else:
        logger.info("Subscription mirrored", customer_id=customer_id, status=status,
                    providers=updated)


EVENT_HANDLERS = {
    'checkout.session.completed': handle_checkout_completed,
    'checkout.session.expired': handle_checkout_expired,
    'customer.subscription.created': handle_subscription_changed,
    'customer.subscription.updated': handle_subscription_changed,
    'customer.subscription.deleted': handle_subscription_changed,
}
