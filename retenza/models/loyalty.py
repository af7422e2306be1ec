"""
LoyaltyProgram and CustomerLoyalty models.
"""
from datetime import datetime
from ..extensions import db
from ..services.loyalty_rules import tiers_from_json, tiers_to_json


class LoyaltyProgram(db.Model):
    """
    A business's loyalty program.
    One per business; tiers are stored as an ordered JSON list.
    """
    __tablename__ = 'loyalty_programs'

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey('businesses.id'), unique=True, nullable=False)

    points_rate = db.Column(db.Integer, nullable=False, default=1)
    description = db.Column(db.Text)

    tiers = db.Column(db.JSON, default=list)
    # Example: [{"id": 1, "name": "Bronze", "points_to_unlock": 0, "rewards": [...]}]

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<LoyaltyProgram business={self.business_id}>'

    def get_tiers(self):
        """Stored tiers as Tier objects, in stored order."""
        return tiers_from_json(self.tiers)

    def set_tiers(self, tiers):
        # Assign a fresh list so SQLAlchemy sees the JSON change
        self.tiers = tiers_to_json(tiers)

    @property
    def tier_names(self):
        return [t.get('name') for t in (self.tiers or [])]

    def to_dict(self):
        return {
            'id': self.id,
            'business_id': self.business_id,
            'points_rate': self.points_rate,
            'description': self.description,
            'tiers': self.tiers or [],
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class CustomerLoyalty(db.Model):
    """
    A customer's running balance and cached tier at one business.

    current_tier_name is derived from points and the business's tiers and is
    refreshed whenever either changes.
    """
    __tablename__ = 'customer_loyalty'

    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey('businesses.id'), primary_key=True)

    points = db.Column(db.Integer, nullable=False, default=0)
    redeemable_points = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    current_tier_name = db.Column(db.String(100))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    business = db.relationship('Business', backref=db.backref('customer_loyalties', lazy='dynamic'))

    def __repr__(self):
        return f'<CustomerLoyalty customer={self.customer_id} business={self.business_id} points={self.points}>'

    def to_dict(self):
        return {
            'customer_id': self.customer_id,
            'business_id': self.business_id,
            'points': self.points,
            'redeemable_points': float(self.redeemable_points or 0),
            'current_tier_name': self.current_tier_name,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
