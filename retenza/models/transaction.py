"""
Transaction and RewardRedemption models.
Both are append-only.
"""
from datetime import datetime
from ..extensions import db


class Transaction(db.Model):
    """
    A purchase recorded by a business for a customer.
    bill_amount is in the smallest currency unit.
    """
    __tablename__ = 'transactions'

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False)
    business_id = db.Column(db.Integer, db.ForeignKey('businesses.id'), nullable=False)

    bill_amount = db.Column(db.Integer, nullable=False)
    points_awarded = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    redemptions = db.relationship('RewardRedemption', backref='transaction', lazy='dynamic')

    __table_args__ = (
        db.Index('ix_transactions_business_customer', 'business_id', 'customer_id'),
    )

    def __repr__(self):
        return f'<Transaction {self.id} bill={self.bill_amount} points={self.points_awarded}>'

    def to_dict(self):
        return {
            'id': self.id,
            'customer_id': self.customer_id,
            'business_id': self.business_id,
            'bill_amount': self.bill_amount,
            'points_awarded': self.points_awarded,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class RewardRedemption(db.Model):
    """A tier reward redeemed at checkout; counted against usage_limit per month."""
    __tablename__ = 'reward_redemptions'

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey('transactions.id'))
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False)
    business_id = db.Column(db.Integer, db.ForeignKey('businesses.id'), nullable=False)

    reward_id = db.Column(db.Integer, nullable=False)
    reward_type = db.Column(db.String(20), nullable=False)
    reward_value = db.Column(db.Numeric(12, 2), default=0)
    tier_name = db.Column(db.String(100))

    redeemed_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f'<RewardRedemption reward={self.reward_id} customer={self.customer_id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'transaction_id': self.transaction_id,
            'customer_id': self.customer_id,
            'business_id': self.business_id,
            'reward_id': self.reward_id,
            'reward_type': self.reward_type,
            'reward_value': float(self.reward_value or 0),
            'tier_name': self.tier_name,
            'redeemed_at': self.redeemed_at.isoformat() if self.redeemed_at else None,
        }
