# -*- coding: utf-8 -*-
"""
Stripe payments gateway.

Wraps the few Stripe calls the marketplace makes: customers, hosted checkout
sessions (one-off orders held with manual capture, and subscriptions with a
trial), payment intent capture, subscription lookup and webhook verification.

The gateway is built once per app by the factory and stored in
app.extensions['payments']; services receive it as a constructor argument.
The API key is passed on every call, the global stripe.api_key is never set.
"""
from typing import Any, Dict, Optional

import stripe
from flask import current_app

from khidma.middleware.errors import UpstreamError
from khidma.services.structured_logging import get_logger

logger = get_logger(__name__)

# Bounds Stripe puts on a Checkout Session's expires_at
CHECKOUT_MIN_LIFETIME_MINUTES = 30
CHECKOUT_MAX_LIFETIME_MINUTES = 24 * 60


def checkout_lifetime_minutes(ttl_minutes: int) -> int:
    """Checkout lifetime for an order that is abandoned after ttl_minutes."""
    return max(CHECKOUT_MIN_LIFETIME_MINUTES, min(int(ttl_minutes), CHECKOUT_MAX_LIFETIME_MINUTES))


def stripe_message(error: Exception) -> str:
    """Best human-readable message carried by a Stripe error."""
    return getattr(error, "user_message", None) or str(error)


def field(obj: Any, name: str, default=None):
    """Read a field from a Stripe object, a dict or a plain object."""
    if obj is None:
        return default
    # Subscript first: "items" is also a method name on mapping types
    if hasattr(obj, "__getitem__"):
        try:
            value = obj[name]
        except (KeyError, TypeError, IndexError):
            return default
        return default if value is None else value
    return getattr(obj, name, default)


class StripeGateway:
    """Thin, injectable wrapper around the Stripe SDK."""

    def __init__(self, api_key: str, api_version: Optional[str] = None, currency: str = "mad"):
        self.api_key = api_key
        self.api_version = api_version
        self.currency = currency

    def _opts(self) -> Dict[str, Any]:
        if not self.api_key:
            raise UpstreamError("STRIPE_SECRET_KEY missing")
        opts = {"api_key": self.api_key}
        if self.api_version:
            opts["stripe_version"] = self.api_version
        return opts

    def _call(self, what: str, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs, **self._opts())
        except stripe.StripeError as e:
            msg = stripe_message(e)
            logger.error(f"Stripe error during {what}", operation=what, error_message=msg,
                         error_type=type(e).__name__)
            raise UpstreamError(msg) from e

    # ---- customers -------------------------------------------------------

    def find_customer(self, email: str):
        customers = self._call("customer lookup", stripe.Customer.list, email=email, limit=1)
        data = field(customers, "data") or []
        return data[0] if data else None

    def ensure_customer(self, email: str, metadata: Optional[Dict[str, str]] = None) -> str:
        """Return the id of the customer for email, creating one if absent."""
        customer = self.find_customer(email)
        if customer is not None:
            return field(customer, "id")
        created = self._call("customer creation", stripe.Customer.create,
                             email=email, metadata=metadata or {})
        return field(created, "id")

    # ---- one-off orders held in escrow -----------------------------------

    def create_order_checkout(self, *, customer_id: str, amount_minor: int, product_name: str,
                              description: str, metadata: Dict[str, str],
                              success_url: str, cancel_url: str, expires_at: Optional[int] = None):
        """
        Hosted checkout whose payment intent is authorized but not captured.

        expires_at (unix seconds) closes the session before the order row is
        reconciled as abandoned.
        """
        extra = {"expires_at": expires_at} if expires_at else {}
        return self._call(
            "order checkout",
            stripe.checkout.Session.create,
            customer=customer_id,
            mode="payment",
            line_items=[{
                "price_data": {
                    "currency": self.currency,
                    "product_data": {"name": product_name, "description": description},
                    "unit_amount": amount_minor,
                },
                "quantity": 1,
            }],
            payment_intent_data={
                "capture_method": "manual",
                "metadata": metadata,
            },
            success_url=success_url,
            cancel_url=cancel_url,
            metadata={"order_id": metadata["order_id"]},
            **extra,
        )

    def capture_payment(self, payment_intent_id: str):
        return self._call("capture", stripe.PaymentIntent.capture, payment_intent_id)

    def cancel_payment(self, payment_intent_id: str):
        """Void an uncaptured hold."""
        return self._call("cancel", stripe.PaymentIntent.cancel, payment_intent_id)

    # ---- subscriptions ---------------------------------------------------

    def latest_subscription(self, customer_id: str):
        subs = self._call("subscription lookup", stripe.Subscription.list,
                          customer=customer_id, status="all", limit=1)
        data = field(subs, "data") or []
        return data[0] if data else None

    def has_active_subscription(self, customer_id: str) -> bool:
        subs = self._call("subscription lookup", stripe.Subscription.list,
                          customer=customer_id, status="active", limit=1)
        return bool(field(subs, "data"))

    def create_subscription_checkout(self, *, customer_id: str, price_id: str, trial_days: int,
                                     metadata: Dict[str, str], success_url: str, cancel_url: str):
        return self._call(
            "subscription checkout",
            stripe.checkout.Session.create,
            customer=customer_id,
            mode="subscription",
            line_items=[{"price": price_id, "quantity": 1}],
            subscription_data={
                "trial_period_days": trial_days,
                "metadata": metadata,
            },
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
        )

    # ---- webhooks --------------------------------------------------------

    def construct_event(self, payload: bytes, sig_header: str, secret: str):
        """Verify a webhook payload; raises ValueError or SignatureVerificationError."""
        return stripe.Webhook.construct_event(payload, sig_header, secret)


def subscription_period_end(subscription) -> Optional[int]:
    """current_period_end, which newer API versions only expose per item."""
    value = field(subscription, "current_period_end")
    if value:
        return value
    items = field(field(subscription, "items"), "data") or []
    if items:
        return field(items[0], "current_period_end")
    return None


def build_gateway(config) -> StripeGateway:
    return StripeGateway(
        api_key=config.get("STRIPE_SECRET_KEY", ""),
        api_version=config.get("STRIPE_API_VERSION"),
        currency=config.get("CURRENCY", "mad"),
    )


def init_payments(app, gateway=None) -> None:
    app.extensions['payments'] = gateway or build_gateway(app.config)


def get_payments_gateway():
    return current_app.extensions['payments']
