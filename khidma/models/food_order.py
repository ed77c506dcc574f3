# -*- coding: utf-8 -*-
"""
Food order with escrow-style payment hold.

Lifecycle:
    status          pending -> paid -> preparing -> ready -> delivered -> completed
                    (cancelled / failed from pending)
    payment_status  pending -> authorized -> released (failed on intake error)

Completion requires both client_confirmed_at and cook_confirmed_at.
"""
from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from khidma.domain import ConfirmationRole, OrderStatus, PaymentStatus
from khidma.infra.db import db
from khidma.models.types import JSONDict
from khidma.utils.clock import utcnow, isoformat


def _money(value) -> Optional[float]:
    return float(value) if value is not None else None


class FoodOrder(db.Model):
    __tablename__ = 'food_orders'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    client_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    cook_id = db.Column(db.String(36), db.ForeignKey('home_cooks.id'), nullable=False, index=True)
    dish_id = db.Column(db.String(36), db.ForeignKey('food_dishes.id'), nullable=False)

    # Price breakdown, always written together
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False)
    platform_fee = db.Column(db.Numeric(10, 2), nullable=False)
    cook_amount = db.Column(db.Numeric(10, 2), nullable=False)

    # Delivery
    delivery_address = db.Column(db.Text)
    delivery_notes = db.Column(db.Text)
    scheduled_delivery_at = db.Column(db.DateTime(timezone=True))

    status = db.Column(db.String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)
    payment_status = db.Column(db.String(20), nullable=False, default=PaymentStatus.PENDING.value)
    failure_reason = db.Column(db.Text)

    # Stripe references
    stripe_checkout_session_id = db.Column(db.String(255), index=True)
    stripe_payment_intent_id = db.Column(db.String(255))

    # Dual confirmation
    client_confirmed_at = db.Column(db.DateTime(timezone=True))
    cook_confirmed_at = db.Column(db.DateTime(timezone=True))
    escrow_released_at = db.Column(db.DateTime(timezone=True))
    receipt_generated_at = db.Column(db.DateTime(timezone=True))
    receipt_data = db.Column(JSONDict)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    client = db.relationship('User', lazy='joined')
    cook = db.relationship('HomeCook', lazy='joined')
    dish = db.relationship('FoodDish', lazy='joined')

    @property
    def both_confirmed(self) -> bool:
        return self.client_confirmed_at is not None and self.cook_confirmed_at is not None

    @property
    def escrow_released(self) -> bool:
        return self.payment_status == PaymentStatus.RELEASED.value

    def is_party(self, user_id: str, role: ConfirmationRole) -> bool:
        if role is ConfirmationRole.CLIENT:
            return self.client_id == user_id
        if role is ConfirmationRole.COOK:
            return self.cook is not None and self.cook.user_id == user_id
        raise AssertionError(role)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'client_id': self.client_id,
            'cook_id': self.cook_id,
            'dish_id': self.dish_id,
            'quantity': self.quantity,
            'unit_price': _money(self.unit_price),
            'total_amount': _money(self.total_amount),
            'platform_fee': _money(self.platform_fee),
            'cook_amount': _money(self.cook_amount),
            'delivery_address': self.delivery_address,
            'delivery_notes': self.delivery_notes,
            'scheduled_delivery_at': isoformat(self.scheduled_delivery_at),
            'status': self.status,
            'payment_status': self.payment_status,
            'client_confirmed_at': isoformat(self.client_confirmed_at),
            'cook_confirmed_at': isoformat(self.cook_confirmed_at),
            'escrow_released_at': isoformat(self.escrow_released_at),
            'receipt': self.receipt_data,
            'created_at': isoformat(self.created_at),
        }
