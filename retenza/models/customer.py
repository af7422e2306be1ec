"""
Customer model.
"""
from datetime import datetime
from werkzeug.security import generate_password_hash, check_password_hash
from ..extensions import db


class Customer(db.Model):
    """
    A shopper. Customers are global; their relationship with each business
    lives in CustomerLoyalty.
    """
    __tablename__ = 'customers'

    id = db.Column(db.Integer, primary_key=True)
    phone_number = db.Column(db.String(20), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    name = db.Column(db.String(255))
    gender = db.Column(db.String(20))  # 'male', 'female', 'other'
    dob = db.Column(db.Date)
    anniversary = db.Column(db.Date)
    is_setup_complete = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    loyalties = db.relationship('CustomerLoyalty', backref='customer', lazy='dynamic')

    GENDERS = ('male', 'female', 'other')

    def __repr__(self):
        return f'<Customer {self.id} {self.phone_number}>'

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'phone_number': self.phone_number,
            'name': self.name,
            'gender': self.gender,
            'dob': self.dob.isoformat() if self.dob else None,
            'anniversary': self.anniversary.isoformat() if self.anniversary else None,
            'is_setup_complete': self.is_setup_complete,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
