"""
Tests for the Auth API endpoints (/api/auth).
"""
import jwt

from retenza.extensions import db
from retenza.models import Business, Session

from conftest import PASSWORD


def signup_customer(client, phone='5551234', password=PASSWORD):
    return client.post('/api/auth/signup/customer', json={
        'phone_number': phone,
        'password': password,
        'confirm_password': password,
    })


class TestSignup:
    """Tests for customer and business signup."""

    def test_customer_signup_returns_token(self, client):
        response = signup_customer(client)

        assert response.status_code == 201
        data = response.get_json()
        assert data['token_type'] == 'Bearer'
        assert data['role'] == 'customer'
        assert data['customer']['phone_number'] == '5551234'
        assert data['customer']['is_setup_complete'] is False

    def test_phone_normalized(self, client):
        response = signup_customer(client, phone='555-12 34')
        assert response.get_json()['customer']['phone_number'] == '5551234'

    def test_duplicate_phone(self, client):
        signup_customer(client)
        response = signup_customer(client)

        assert response.status_code == 409
        assert response.get_json()['error']['code'] == 'DUPLICATE_ENTRY'

    def test_short_password(self, client):
        response = signup_customer(client, password='short')
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'INVALID_PASSWORD'

    def test_password_mismatch(self, client):
        response = client.post('/api/auth/signup/customer', json={
            'phone_number': '5551234', 'password': PASSWORD, 'confirm_password': 'different1',
        })
        assert response.status_code == 400

    def test_business_signup_pending_approval(self, client):
        response = client.post('/api/auth/signup/business', json={
            'phone_number': '5557777',
            'password': PASSWORD,
            'name': 'Fresh Bakes',
            'business_type': 'bakery',
        })

        assert response.status_code == 201
        data = response.get_json()
        assert data['business']['approved'] is False
        assert data['business']['business_type'] == 'bakery'

    def test_business_signup_requires_name(self, client):
        response = client.post('/api/auth/signup/business', json={
            'phone_number': '5557777', 'password': PASSWORD,
        })
        assert response.status_code == 400

    def test_loyalty_setup_allowed_before_approval(self, client):
        token = client.post('/api/auth/signup/business', json={
            'phone_number': '5557777', 'password': PASSWORD, 'name': 'Fresh Bakes',
        }).get_json()['token']

        response = client.post(
            '/api/auth/signup/business/loyalty-setup',
            headers={'Authorization': f'Bearer {token}'},
            json={
                'points_rate': 2,
                'description': 'Earn points on every loaf',
                'tiers': [{
                    'name': 'Bronze', 'points_to_unlock': 0,
                    'rewards': [{'reward_type': 'discount', 'description': '10 off', 'value': 10}],
                }],
            },
        )

        assert response.status_code == 201
        data = response.get_json()
        assert data['program']['points_rate'] == 2
        assert data['business']['is_setup_complete'] is True


class TestLogin:
    """Tests for login, session and logout."""

    def test_login_and_session(self, client, customer):
        response = client.post('/api/auth/login/customer', json={
            'phone_number': customer.phone_number, 'password': PASSWORD,
        })
        assert response.status_code == 200
        token = response.get_json()['token']

        session = client.get('/api/auth/session', headers={'Authorization': f'Bearer {token}'})
        assert session.status_code == 200
        data = session.get_json()
        assert data['role'] == 'customer'
        assert data['customer']['id'] == customer.id

    def test_wrong_password(self, client, customer):
        response = client.post('/api/auth/login/customer', json={
            'phone_number': customer.phone_number, 'password': 'wrong-password',
        })
        assert response.status_code == 401
        assert response.get_json()['error']['code'] == 'INVALID_CREDENTIALS'

    def test_customer_cannot_login_as_business(self, client, customer):
        response = client.post('/api/auth/login/business', json={
            'phone_number': customer.phone_number, 'password': PASSWORD,
        })
        assert response.status_code == 401

    def test_logout_revokes_token(self, client, customer_headers):
        assert client.post('/api/auth/logout', headers=customer_headers).status_code == 200

        response = client.get('/api/auth/session', headers=customer_headers)
        assert response.status_code == 401
        assert Session.query.count() == 0

    def test_session_requires_token(self, client):
        response = client.get('/api/auth/session')
        assert response.status_code == 401
        assert response.get_json()['error']['code'] == 'INVALID_TOKEN'

    def test_tampered_token_rejected(self, app, client, customer):
        token = jwt.encode({'sub': str(customer.id), 'role': 'customer', 'jti': 'x'},
                           'not-the-key', algorithm='HS256')
        response = client.get('/api/auth/session', headers={'Authorization': f'Bearer {token}'})
        assert response.status_code == 401

    def test_wrong_role_forbidden(self, client, customer_headers):
        response = client.get('/api/business/profile', headers=customer_headers)
        assert response.status_code == 403


class TestChangePassword:
    """Tests for POST /api/auth/change-password."""

    def test_change_password_signs_out_other_sessions(self, client, business, business_headers):
        other = client.post('/api/auth/login/business', json={
            'phone_number': business.phone_number, 'password': PASSWORD,
        }).get_json()['token']

        response = client.post('/api/auth/change-password', headers=business_headers, json={
            'current_password': PASSWORD,
            'new_password': 'new-password-1',
            'confirm_password': 'new-password-1',
        })

        assert response.status_code == 200
        assert db.session.get(Business, business.id).check_password('new-password-1')
        stale = client.get('/api/auth/session', headers={'Authorization': f'Bearer {other}'})
        assert stale.status_code == 401
        assert client.get('/api/auth/session', headers=business_headers).status_code == 200

    def test_wrong_current_password(self, client, business_headers):
        response = client.post('/api/auth/change-password', headers=business_headers, json={
            'current_password': 'nope-nope', 'new_password': 'new-password-1',
        })
        assert response.status_code == 401
