"""
Tests for the Admin API endpoints (/api/admin).
"""
from retenza.models import Business, CustomerLoyalty, LoyaltyProgram

from conftest import make_business


class TestAdminLogin:
    """Tests for POST /api/admin/login."""

    def test_login(self, client):
        response = client.post('/api/admin/login', json={'username': 'admin', 'password': 'admin-pass'})

        assert response.status_code == 200
        assert response.get_json()['role'] == 'admin'

    def test_bad_credentials(self, client):
        response = client.post('/api/admin/login', json={'username': 'admin', 'password': 'guess'})
        assert response.status_code == 401

    def test_business_token_rejected(self, client, business_headers):
        response = client.get('/api/admin/businesses', headers=business_headers)
        assert response.status_code == 403


class TestBusinessApproval:
    """Tests for listing, approving and deleting businesses."""

    def test_list_filters_by_approval(self, client, admin_headers, business):
        make_business(phone='5550002', name='Pending Shop', approved=False)

        pending = client.get('/api/admin/businesses?approved=false', headers=admin_headers).get_json()
        everyone = client.get('/api/admin/businesses', headers=admin_headers).get_json()

        assert [b['name'] for b in pending['businesses']] == ['Pending Shop']
        assert everyone['total'] == 2

    def test_invalid_filter(self, client, admin_headers):
        response = client.get('/api/admin/businesses?approved=maybe', headers=admin_headers)
        assert response.status_code == 400

    def test_approve(self, client, admin_headers):
        pending = make_business(phone='5550002', name='Pending Shop', approved=False)

        response = client.patch(f'/api/admin/businesses/{pending.id}',
                                headers=admin_headers, json={'approved': True})

        assert response.status_code == 200
        assert response.get_json()['business']['approved'] is True

    def test_approve_requires_boolean(self, client, admin_headers, business):
        response = client.patch(f'/api/admin/businesses/{business.id}',
                                headers=admin_headers, json={'approved': 'yes'})
        assert response.status_code == 400

    def test_approve_unknown_business(self, client, admin_headers):
        response = client.patch('/api/admin/businesses/999', headers=admin_headers, json={'approved': True})
        assert response.status_code == 404

    def test_delete_cascades(self, client, admin_headers, business, customer, business_headers):
        client.post('/api/business/customers', headers=business_headers,
                    json={'phone_number': customer.phone_number})

        response = client.delete(f'/api/admin/businesses/{business.id}', headers=admin_headers)

        assert response.status_code == 200
        assert Business.query.count() == 0
        assert LoyaltyProgram.query.count() == 0
        assert CustomerLoyalty.query.count() == 0
        # The business session went with it
        assert client.get('/api/business/profile', headers=business_headers).status_code == 401
