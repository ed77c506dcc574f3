# -*- coding: utf-8 -*-
"""
Closed enumerations for every status domain of the marketplace.

Statuses are stored as plain strings in the database; these enums are the
only place the allowed values are spelled out.
"""
from __future__ import annotations

from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    AUTHORIZED = "authorized"
    RELEASED = "released"
    FAILED = "failed"
    REFUNDED = "refunded"


class ConfirmationRole(str, Enum):
    CLIENT = "client"
    COOK = "cook"

    @property
    def timestamp_field(self) -> str:
        if self is ConfirmationRole.CLIENT:
            return "client_confirmed_at"
        if self is ConfirmationRole.COOK:
            return "cook_confirmed_at"
        raise AssertionError(self)

    @property
    def label(self) -> str:
        return self.value.capitalize()


class ProviderType(str, Enum):
    HOUSE_WORKER = "house_worker"
    HOME_COOK = "home_cook"

    @property
    def dashboard_path(self) -> str:
        if self is ProviderType.HOME_COOK:
            return "cook-dashboard"
        if self is ProviderType.HOUSE_WORKER:
            return "worker-dashboard"
        raise AssertionError(self)

    @property
    def model(self):
        from khidma.models import HomeCook, HouseWorker

        if self is ProviderType.HOME_COOK:
            return HomeCook
        if self is ProviderType.HOUSE_WORKER:
            return HouseWorker
        raise AssertionError(self)


class SubscriptionStatus(str, Enum):
    TRIAL = "trial"
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


# Orders that can no longer take or release a payment
CLOSED_ORDER_STATUSES = frozenset({OrderStatus.CANCELLED.value, OrderStatus.FAILED.value})

# Stripe subscription statuses that count as subscribed
STRIPE_SUBSCRIBED_STATUSES = frozenset({"active", "trialing"})


def parse_enum(enum_cls, value):
    """Return the member of enum_cls for value, or None when unknown."""
    try:
        return enum_cls(value)
    except ValueError:
        return None
