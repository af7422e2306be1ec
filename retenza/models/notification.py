"""
Notification and PushSubscription models.
"""
from datetime import datetime
from ..extensions import db


class Notification(db.Model):
    """
    A message stored for a customer, optionally scoped to a business.
    Stored regardless of whether push delivery succeeds.
    """
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False, index=True)
    business_id = db.Column(db.Integer, db.ForeignKey('businesses.id'))

    type = db.Column(db.String(50), nullable=False)  # 'points_earned', 'tier_upgraded', ...
    title = db.Column(db.String(255), nullable=False)
    body = db.Column(db.Text, nullable=False)
    data = db.Column(db.JSON, default=dict)

    is_read = db.Column(db.Boolean, default=False, nullable=False)
    sent_at = db.Column(db.DateTime, default=datetime.utcnow)
    read_at = db.Column(db.DateTime)

    def __repr__(self):
        return f'<Notification {self.id} {self.type}>'

    def to_dict(self):
        return {
            'id': self.id,
            'customer_id': self.customer_id,
            'business_id': self.business_id,
            'type': self.type,
            'title': self.title,
            'body': self.body,
            'data': self.data or {},
            'is_read': self.is_read,
            'sent_at': self.sent_at.isoformat() if self.sent_at else None,
            'read_at': self.read_at.isoformat() if self.read_at else None,
        }


class PushSubscription(db.Model):
    """Web Push endpoint a customer registered for one business."""
    __tablename__ = 'push_subscriptions'

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False)
    business_id = db.Column(db.Integer, db.ForeignKey('businesses.id'), nullable=False)

    endpoint = db.Column(db.Text, nullable=False)
    p256dh = db.Column(db.String(255), nullable=False)
    auth = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('customer_id', 'business_id', name='uq_push_subscription_customer_business'),
    )

    def __repr__(self):
        return f'<PushSubscription customer={self.customer_id} business={self.business_id}>'

    def to_subscription_info(self):
        """Shape expected by pywebpush.webpush()."""
        return {
            'endpoint': self.endpoint,
            'keys': {'p256dh': self.p256dh, 'auth': self.auth},
        }

    def to_dict(self):
        return {
            'id': self.id,
            'customer_id': self.customer_id,
            'business_id': self.business_id,
            'endpoint': self.endpoint,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
