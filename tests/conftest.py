"""
Shared fixtures for Retenza tests.

The app fixture keeps one application context pushed for the whole test;
the test client reuses it, so requests and test code share a db session.
"""
from datetime import date
from unittest.mock import patch

import pytest

from retenza import create_app
from retenza.extensions import db
from retenza.models import Business, Customer, LoyaltyProgram
from retenza.services.auth_service import AuthService

PASSWORD = 'password123'

TIERS = [
    {
        'id': 1,
        'name': 'Bronze',
        'points_to_unlock': 0,
        'rewards': [
            {'id': 1, 'reward_type': 'discount', 'description': 'Flat 50 off', 'value': 50, 'usage_limit': 2},
            {'id': 2, 'reward_type': 'cashback', 'description': '5% cashback', 'value': 5},
        ],
    },
    {
        'id': 2,
        'name': 'Silver',
        'points_to_unlock': 100,
        'rewards': [
            {'id': 3, 'reward_type': 'free_item', 'description': 'Free coffee', 'value': 30},
        ],
    },
    {
        'id': 3,
        'name': 'Gold',
        'points_to_unlock': 500,
        'rewards': [
            {'id': 4, 'reward_type': 'discount', 'description': 'Flat 100 off', 'value': 100},
        ],
    },
]


@pytest.fixture
def app():
    """Create test application."""
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def webpush_mock():
    """Never reach a real push service."""
    with patch('retenza.services.notification_service.webpush') as mock:
        yield mock


def make_business(phone='5550001', name='Corner Cafe', approved=True, tiers=TIERS, points_rate=1):
    business = Business(phone_number=phone, name=name, approved=approved, is_setup_complete=True)
    business.set_password(PASSWORD)
    db.session.add(business)
    db.session.flush()

    if tiers is not None:
        db.session.add(LoyaltyProgram(
            business_id=business.id,
            points_rate=points_rate,
            description='Earn points on every visit',
            tiers=[dict(t) for t in tiers],
        ))
    db.session.commit()
    return business


def make_customer(phone='5559001', name='Asha', gender='female', dob=date(1995, 5, 5)):
    customer = Customer(phone_number=phone, name=name, gender=gender, dob=dob,
                        is_setup_complete=bool(name))
    customer.set_password(PASSWORD)
    db.session.add(customer)
    db.session.commit()
    return customer


def bearer(user_id, role):
    token = AuthService.issue_token(user_id, role)['token']
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def business(app):
    """Approved business with a Bronze/Silver/Gold program, 1 point per unit."""
    return make_business()


@pytest.fixture
def customer(app):
    return make_customer()


@pytest.fixture
def business_headers(business):
    return bearer(business.id, 'business')


@pytest.fixture
def customer_headers(customer):
    return bearer(customer.id, 'customer')


@pytest.fixture
def admin_headers(app):
    return bearer(0, 'admin')
