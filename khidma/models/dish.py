# -*- coding: utf-8 -*-
import uuid

from khidma.infra.db import db
from khidma.utils.clock import utcnow, isoformat


class FoodDish(db.Model):
    __tablename__ = 'food_dishes'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    cook_id = db.Column(db.String(36), db.ForeignKey('home_cooks.id', ondelete='CASCADE'),
                        nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(100), nullable=False, default='main')
    price = db.Column(db.Numeric(10, 2), nullable=False)
    is_available = db.Column(db.Boolean, default=True)
    order_count = db.Column(db.Integer, default=0)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'cook_id': self.cook_id,
            'name': self.name,
            'description': self.description,
            'category': self.category,
            'price': float(self.price) if self.price is not None else None,
            'is_available': bool(self.is_available),
            'order_count': self.order_count or 0,
            'created_at': isoformat(self.created_at),
        }
