"""
Mission and MissionRegistry models.
"""
from datetime import datetime
from enum import Enum
from ..extensions import db


class MissionStatus(str, Enum):
    """Lifecycle of a customer's attempt at a mission."""
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    FAILED = 'failed'


class Mission(db.Model):
    """
    A time-bound promotional offer restricted to a subset of tiers.

    applicable_tiers is a list of tier names; ["all"] targets every tier.
    filters narrows the audience further:
        {"gender": "female", "age_range": {"min": 18, "max": 35},
         "location": "...", "customer_type": "..."}
    """
    __tablename__ = 'missions'

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey('businesses.id'), nullable=False, index=True)

    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)
    offer = db.Column(db.Text)

    applicable_tiers = db.Column(db.JSON, default=lambda: ['all'])
    filters = db.Column(db.JSON, default=dict)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    registries = db.relationship('MissionRegistry', backref='mission', lazy='dynamic')

    def __repr__(self):
        return f'<Mission {self.id} {self.title}>'

    def is_expired(self, now: datetime = None) -> bool:
        return self.expires_at <= (now or datetime.utcnow())

    def to_dict(self):
        return {
            'id': self.id,
            'business_id': self.business_id,
            'title': self.title,
            'description': self.description,
            'offer': self.offer,
            'applicable_tiers': self.applicable_tiers or [],
            'filters': self.filters or {},
            'is_active': self.is_active,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class MissionRegistry(db.Model):
    """A customer's progress on a mission."""
    __tablename__ = 'mission_registry'

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False)
    business_id = db.Column(db.Integer, db.ForeignKey('businesses.id'), nullable=False)
    mission_id = db.Column(db.Integer, db.ForeignKey('missions.id'), nullable=False)

    status = db.Column(db.String(20), nullable=False, default=MissionStatus.IN_PROGRESS.value)
    started_at = db.Column(db.DateTime, default=datetime.utcnow)
    completed_at = db.Column(db.DateTime)

    discount_amount = db.Column(db.Numeric(12, 2))
    discount_percentage = db.Column(db.Numeric(5, 2))
    notes = db.Column(db.Text)

    customer = db.relationship('Customer')

    __table_args__ = (
        db.Index('ix_mission_registry_customer_mission', 'customer_id', 'mission_id'),
    )

    def __repr__(self):
        return f'<MissionRegistry mission={self.mission_id} customer={self.customer_id} {self.status}>'

    def to_dict(self, include_mission=False, include_customer=False):
        data = {
            'id': self.id,
            'customer_id': self.customer_id,
            'business_id': self.business_id,
            'mission_id': self.mission_id,
            'status': self.status,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'discount_amount': float(self.discount_amount) if self.discount_amount is not None else None,
            'discount_percentage': float(self.discount_percentage) if self.discount_percentage is not None else None,
            'notes': self.notes,
        }
        if include_mission and self.mission:
            data['mission'] = self.mission.to_dict()
        if include_customer and self.customer:
            data['customer'] = {
                'id': self.customer.id,
                'name': self.customer.name,
                'phone_number': self.customer.phone_number,
            }
        return data
