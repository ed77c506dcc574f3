# -*- coding: utf-8 -*-
"""
Provider subscriptions.

Stripe is the source of truth for a provider's subscription. The local row
only mirrors it, except for the free trial window opened at registration,
which is consulted when Stripe knows nothing about the provider yet.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from khidma.domain import (
    STRIPE_SUBSCRIBED_STATUSES,
    ProviderType,
    SubscriptionStatus,
    parse_enum,
)
from khidma.middleware.errors import ConflictError, UpstreamError, ValidationError
from khidma.models import User
from khidma.services.metrics import get_metrics_service
from khidma.services.payments import field, subscription_period_end
from khidma.services.structured_logging import get_flow_logger
from khidma.utils.clock import days_left, ensure_aware, from_unix, isoformat, utcnow

check_log = get_flow_logger('check-subscription')
checkout_log = get_flow_logger('create-subscription')


def parse_provider_type(value) -> ProviderType:
    provider_type = parse_enum(ProviderType, value) if value else None
    if provider_type is None:
        raise ValidationError("Invalid provider type")
    return provider_type


def trial_status(provider, now: datetime) -> Optional[Dict[str, Any]]:
    """Trial report for provider, or None once the window is closed."""
    if provider is None or provider.subscription_status != SubscriptionStatus.TRIAL.value:
        return None
    ends_at = ensure_aware(provider.subscription_ends_at)
    if ends_at is None or ends_at <= ensure_aware(now):
        return None
    return {
        'subscribed': True,
        'status': SubscriptionStatus.TRIAL.value,
        'trial_ends_at': isoformat(ends_at),
        'days_left': days_left(ends_at, now),
    }


class SubscriptionService:
    """Subscription status resolution and subscription checkout."""

    def __init__(self, session, payments, prices: Optional[Dict[str, str]] = None,
                 trial_days: int = 30, site_url: str = ""):
        self.session = session
        self.payments = payments
        self.prices = prices or {}
        self.trial_days = trial_days
        self.site_url = site_url.rstrip('/')

    def _provider(self, provider_type: ProviderType, user: User):
        model = provider_type.model
        return self.session.query(model).filter_by(user_id=user.id).first()

    def check(self, user: User, provider_type_value, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Resolve whether the caller's provider account is subscribed.

        No caching: Stripe is consulted on every call when it knows the
        customer, and its answer is written back onto the provider row.
        """
        provider_type = parse_provider_type(provider_type_value)
        now = now or utcnow()
        check_log.step("Function started", user_id=user.id, provider_type=provider_type.value)

        customer = self.payments.find_customer(user.email)
        if customer is None:
            result = trial_status(self._provider(provider_type, user), now) or {
                'subscribed': False,
                'status': SubscriptionStatus.EXPIRED.value,
            }
            return self._report(result)

        subscription = self.payments.latest_subscription(field(customer, 'id'))
        if subscription is None:
            result = trial_status(self._provider(provider_type, user), now) or {
                'subscribed': False,
                'status': 'no_subscription',
            }
            return self._report(result)

        status = field(subscription, 'status')
        ends_at = from_unix(subscription_period_end(subscription))
        trial_end = from_unix(field(subscription, 'trial_end'))

        provider = self._provider(provider_type, user)
        if provider is not None:
            provider.mirror_subscription(status, field(subscription, 'id'), ends_at)
            self.session.commit()

        return self._report({
            'subscribed': status in STRIPE_SUBSCRIBED_STATUSES,
            'status': status,
            'subscription_end': isoformat(ends_at),
            'trial_end': isoformat(trial_end),
        })

    @staticmethod
    def _report(result: Dict[str, Any]) -> Dict[str, Any]:
        check_log.step("Subscription status", status=result['status'],
                       subscribed=result['subscribed'])
        metrics = get_metrics_service()
        if metrics is not None:
            metrics.record_subscription_check(result['status'])
        return result

    def create_checkout(self, user: User, provider_type_value, origin: Optional[str] = None) -> Dict[str, Any]:
        """Hosted checkout for the monthly plan, first month free."""
        provider_type = parse_provider_type(provider_type_value)
        checkout_log.step("Provider type", user_id=user.id, provider_type=provider_type.value)

        price_id = self.prices.get(provider_type.value)
        if not price_id:
            raise UpstreamError(f"No subscription price configured for {provider_type.value}")

        customer_id = self.payments.ensure_customer(
            user.email, metadata={'user_id': user.id, 'provider_type': provider_type.value})
        checkout_log.step("Stripe customer ready", customer_id=customer_id)

        if self.payments.has_active_subscription(customer_id):
            checkout_log.step("Already subscribed", customer_id=customer_id)
            raise ConflictError("Already have an active subscription")

        base = (origin or self.site_url).rstrip('/')
        dashboard = f"{base}/{provider_type.dashboard_path}"
        metadata = {'provider_type': provider_type.value, 'user_id': user.id}
        session = self.payments.create_subscription_checkout(
            customer_id=customer_id,
            price_id=price_id,
            trial_days=self.trial_days,
            metadata=metadata,
            success_url=f"{dashboard}?subscription=success",
            cancel_url=f"{dashboard}?subscription=cancelled",
        )
        checkout_log.step("Checkout session created", session_id=session.id)

        provider = self._provider(provider_type, user)
        if provider is not None:
            provider.stripe_customer_id = customer_id
            self.session.commit()

        return {'url': session.url, 'session_id': session.id}
