"""
Tests for the Customer API endpoints (/api/customer).
"""
from datetime import datetime, timedelta

from retenza.models import MissionRegistry
from retenza.services.mission_service import MissionService
from retenza.services.points_service import PointsService

from conftest import make_business


def add_mission(business, **overrides):
    data = {
        'title': 'Coffee Streak',
        'description': 'Five coffees in five days',
        'expires_at': (datetime.utcnow() + timedelta(days=5)).isoformat(),
    }
    data.update(overrides)
    return MissionService(business.id).create_mission(data)


class TestProfile:
    """Tests for the customer profile."""

    def test_get_profile(self, client, customer_headers):
        data = client.get('/api/customer/profile', headers=customer_headers).get_json()
        assert data['customer']['name'] == 'Asha'

    def test_update_profile(self, client, customer_headers):
        response = client.patch('/api/customer/profile', headers=customer_headers, json={
            'name': 'Asha R',
            'gender': 'other',
            'dob': '1990-02-14',
        })

        data = response.get_json()['customer']
        assert data['name'] == 'Asha R'
        assert data['gender'] == 'other'
        assert data['dob'] == '1990-02-14'
        assert data['is_setup_complete'] is True

    def test_invalid_gender(self, client, customer_headers):
        response = client.put('/api/customer/profile', headers=customer_headers, json={'gender': 'robot'})
        assert response.status_code == 400

    def test_invalid_date(self, client, customer_headers):
        response = client.put('/api/customer/profile', headers=customer_headers, json={'dob': '14/02/1990'})
        assert response.status_code == 400

    def test_business_token_rejected(self, client, business_headers):
        response = client.get('/api/customer/profile', headers=business_headers)
        assert response.status_code == 403


class TestShops:
    """Tests for the dashboard and shop directory."""

    def test_dashboard_lists_enrolled_shops(self, client, customer_headers, business, customer):
        PointsService(business.id).award_points(customer.id, 40)

        shops = client.get('/api/customer/dashboard', headers=customer_headers).get_json()['shops']

        assert len(shops) == 1
        assert shops[0]['name'] == 'Corner Cafe'
        assert shops[0]['points'] == 40
        assert shops[0]['current_tier_name'] == 'Bronze'

    def test_directory_only_approved(self, client, customer_headers, business):
        make_business(phone='5550002', name='Pending Place', approved=False)

        data = client.get('/api/customer/shops', headers=customer_headers).get_json()

        assert data['total'] == 1
        assert data['shops'][0]['name'] == 'Corner Cafe'

    def test_shop_detail(self, client, customer_headers, business, customer):
        PointsService(business.id).award_points(customer.id, 90)

        data = client.get(f'/api/customer/shops/{business.id}', headers=customer_headers).get_json()

        assert data['shop']['name'] == 'Corner Cafe'
        assert data['loyalty']['points'] == 90
        assert data['current_tier']['name'] == 'Bronze'
        assert data['progress'] == {'next_tier': 'Silver', 'points_needed': 10, 'percentage': 90.0}
        assert len(data['transactions']) == 1

    def test_shop_detail_not_member(self, client, customer_headers, business):
        data = client.get(f'/api/customer/shops/{business.id}', headers=customer_headers).get_json()
        assert data['loyalty'] is None
        assert data['transactions'] == []

    def test_unapproved_shop_hidden(self, client, customer_headers):
        pending = make_business(phone='5550002', approved=False)
        response = client.get(f'/api/customer/shops/{pending.id}', headers=customer_headers)
        assert response.status_code == 404


class TestMissions:
    """Tests for browsing, starting and abandoning missions."""

    def test_list_eligible(self, client, customer_headers, business):
        add_mission(business)
        add_mission(business, title='Gold Only', applicable_tiers=['Gold'])

        missions = client.get('/api/customer/missions', headers=customer_headers).get_json()['missions']
        assert [m['title'] for m in missions] == ['Coffee Streak']

    def test_start_list_abandon(self, client, customer_headers, business):
        mission = add_mission(business)

        started = client.post('/api/customer/mission-registry', headers=customer_headers,
                              json={'mission_id': mission.id})
        assert started.status_code == 201
        assert started.get_json()['registry']['mission']['title'] == 'Coffee Streak'

        registries = client.get('/api/customer/mission-registry?status=in_progress',
                                headers=customer_headers).get_json()['registries']
        assert len(registries) == 1

        abandoned = client.delete('/api/customer/mission-registry', headers=customer_headers,
                                  json={'mission_id': mission.id})
        assert abandoned.status_code == 200
        assert MissionRegistry.query.count() == 0

    def test_start_twice(self, client, customer_headers, business):
        mission = add_mission(business)
        client.post('/api/customer/mission-registry', headers=customer_headers, json={'mission_id': mission.id})

        response = client.post('/api/customer/mission-registry', headers=customer_headers,
                               json={'mission_id': mission.id})
        assert response.status_code == 400

    def test_start_requires_mission_id(self, client, customer_headers):
        response = client.post('/api/customer/mission-registry', headers=customer_headers, json={})
        assert response.status_code == 400
