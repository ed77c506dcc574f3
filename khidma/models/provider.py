# -*- coding: utf-8 -*-
"""
Provider accounts (home cooks and house workers).

Both categories carry the same subscription fields; the values are mirrored
from Stripe, never computed locally, except for the initial trial window.
"""
from __future__ import annotations

import uuid
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import declared_attr

from khidma.domain import SubscriptionStatus
from khidma.infra.db import db
from khidma.utils.clock import utcnow


class SubscriptionMixin:
    """Columns and helpers shared by every provider table."""

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    @declared_attr
    def user_id(cls):
        return db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'),
                         unique=True, nullable=False, index=True)

    @declared_attr
    def user(cls):
        return db.relationship('User', lazy='joined')

    description = db.Column(db.Text)
    location = db.Column(db.String(255))
    is_verified = db.Column(db.Boolean, default=False)

    # Subscription (trial, active, expired, cancelled, or a raw Stripe status)
    subscription_status = db.Column(db.String(32), default=SubscriptionStatus.TRIAL.value)
    subscription_tier = db.Column(db.String(32))
    subscription_started_at = db.Column(db.DateTime(timezone=True))
    subscription_ends_at = db.Column(db.DateTime(timezone=True), index=True)
    stripe_customer_id = db.Column(db.String(64), index=True)
    stripe_subscription_id = db.Column(db.String(64))

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def start_trial(self, days: int, now=None):
        """Open the free trial window for a newly registered provider."""
        now = now or utcnow()
        self.subscription_status = SubscriptionStatus.TRIAL.value
        self.subscription_started_at = now
        self.subscription_ends_at = now + timedelta(days=days)

    def mirror_subscription(self, status: str, subscription_id: Optional[str], ends_at=None):
        """Copy the provider-side subscription state onto this row."""
        self.subscription_status = status
        self.stripe_subscription_id = subscription_id
        if ends_at is not None:
            self.subscription_ends_at = ends_at


class HomeCook(SubscriptionMixin, db.Model):
    __tablename__ = 'home_cooks'

    delivery_available = db.Column(db.Boolean, default=False)
    min_order_amount = db.Column(db.Numeric(10, 2))
    completed_orders = db.Column(db.Integer, default=0)

    dishes = db.relationship('FoodDish', backref='cook', lazy=True)


class HouseWorker(SubscriptionMixin, db.Model):
    __tablename__ = 'house_workers'

    hourly_rate = db.Column(db.Numeric(10, 2))
