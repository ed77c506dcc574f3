# -*- coding: utf-8 -*-
import uuid

from khidma.infra.db import db
from khidma.models.types import JSONDict
from khidma.utils.clock import utcnow, isoformat


class Notification(db.Model):
    __tablename__ = 'notifications'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'),
                        nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(64), nullable=False, index=True)
    priority = db.Column(db.String(16), default='normal')
    link = db.Column(db.String(255))
    # "metadata" is reserved on declarative models
    meta = db.Column('metadata', JSONDict)
    is_read = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'title': self.title,
            'message': self.message,
            'type': self.type,
            'priority': self.priority,
            'link': self.link,
            'metadata': self.meta or {},
            'is_read': bool(self.is_read),
            'created_at': isoformat(self.created_at),
        }
