"""
Business model - the tenant of the Retenza platform.
"""
from datetime import datetime
from werkzeug.security import generate_password_hash, check_password_hash
from ..extensions import db


class Business(db.Model):
    """
    A shop using Retenza to run its loyalty program.
    Global table - every other business-owned row carries business_id.
    """
    __tablename__ = 'businesses'

    id = db.Column(db.Integer, primary_key=True)
    phone_number = db.Column(db.String(20), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    # Profile
    name = db.Column(db.String(255))
    address = db.Column(db.Text)
    business_type = db.Column(db.String(100))
    description = db.Column(db.Text)
    email = db.Column(db.String(255))
    contact_number = db.Column(db.String(20))
    contact_number_2 = db.Column(db.String(20))
    gmap_link = db.Column(db.String(500))
    logo_url = db.Column(db.String(500))
    additional_info = db.Column(db.JSON, default=dict)

    # Admin approval workflow
    approved = db.Column(db.Boolean, default=False, nullable=False)
    is_setup_complete = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    loyalty_program = db.relationship('LoyaltyProgram', backref='business', uselist=False)
    missions = db.relationship('Mission', backref='business', lazy='dynamic')

    PROFILE_FIELDS = (
        'name', 'address', 'business_type', 'description', 'email',
        'contact_number', 'contact_number_2', 'gmap_link', 'logo_url', 'additional_info',
    )

    def __repr__(self):
        return f'<Business {self.id} {self.name}>'

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'phone_number': self.phone_number,
            'name': self.name,
            'address': self.address,
            'business_type': self.business_type,
            'description': self.description,
            'email': self.email,
            'contact_number': self.contact_number,
            'contact_number_2': self.contact_number_2,
            'gmap_link': self.gmap_link,
            'logo_url': self.logo_url,
            'additional_info': self.additional_info or {},
            'approved': self.approved,
            'is_setup_complete': self.is_setup_complete,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def to_public_dict(self):
        """Shop directory entry shown to customers."""
        return {
            'id': self.id,
            'name': self.name,
            'address': self.address,
            'business_type': self.business_type,
            'description': self.description,
            'contact_number': self.contact_number,
            'gmap_link': self.gmap_link,
            'logo_url': self.logo_url,
        }
