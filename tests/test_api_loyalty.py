"""
Tests for the Loyalty program API endpoints (/api/business/loyalty).
"""
from retenza.models import CustomerLoyalty

from conftest import bearer, make_business

URL = '/api/business/loyalty'

PLATINUM = {
    'name': 'Platinum',
    'points_to_unlock': 1000,
    'rewards': [{'reward_type': 'cashback', 'description': '10% back', 'value': 10}],
}


class TestProgram:
    """Tests for reading and editing program settings."""

    def test_get_program(self, client, business_headers):
        program = client.get(URL, headers=business_headers).get_json()['program']

        assert program['points_rate'] == 1
        assert [t['name'] for t in program['tiers']] == ['Bronze', 'Silver', 'Gold']

    def test_get_without_program(self, client, app):
        business = make_business(phone='5550002', tiers=None)
        response = client.get(URL, headers=bearer(business.id, 'business'))
        assert response.get_json() == {'program': None}

    def test_update_settings(self, client, business_headers):
        response = client.patch(URL, headers=business_headers,
                                json={'points_rate': 4, 'description': 'Four points per unit'})

        program = response.get_json()['program']
        assert program['points_rate'] == 4
        assert program['description'] == 'Four points per unit'

    def test_update_rejects_bad_rate(self, client, business_headers):
        response = client.patch(URL, headers=business_headers, json={'points_rate': 0})
        assert response.status_code == 400


class TestTiers:
    """Tests for adding, replacing and deleting tiers."""

    def test_add_tier_assigns_ids(self, client, business_headers):
        response = client.post(URL, headers=business_headers, json={'tier': PLATINUM})

        assert response.status_code == 201
        tiers = response.get_json()['program']['tiers']
        platinum = tiers[-1]
        assert platinum['name'] == 'Platinum'
        assert platinum['id'] == 4
        assert platinum['rewards'][0]['id'] == 5

    def test_add_duplicate_tier(self, client, business_headers):
        response = client.post(URL, headers=business_headers,
                               json={'tier': dict(PLATINUM, name='Gold')})
        assert response.status_code == 409

    def test_add_tier_creates_program(self, client, app):
        business = make_business(phone='5550002', tiers=None)
        headers = bearer(business.id, 'business')

        missing_rate = client.post(URL, headers=headers, json={'tier': PLATINUM})
        created = client.post(URL, headers=headers, json={'tier': PLATINUM, 'points_rate': 2})

        assert missing_rate.status_code == 400
        assert created.status_code == 201
        assert created.get_json()['program']['points_rate'] == 2

    def test_add_tier_requires_body(self, client, business_headers):
        response = client.post(URL, headers=business_headers, json={})
        assert response.status_code == 400

    def test_invalid_reward_type(self, client, business_headers):
        tier = dict(PLATINUM, rewards=[{'reward_type': 'voucher', 'description': 'x', 'value': 1}])
        response = client.post(URL, headers=business_headers, json={'tier': tier})
        assert response.status_code == 400

    def test_replace_tiers_recalculates(self, client, business_headers, customer):
        client.post(f'/api/business/customers/{customer.id}/transactions',
                    headers=business_headers, json={'bill_amount': 150})

        response = client.put(URL, headers=business_headers, json={'tiers': [
            {'name': 'Member', 'points_to_unlock': 0, 'rewards': []},
            {'name': 'VIP', 'points_to_unlock': 120, 'rewards': []},
        ]})

        assert response.status_code == 200
        loyalty = CustomerLoyalty.query.filter_by(customer_id=customer.id).one()
        assert loyalty.current_tier_name == 'VIP'

    def test_delete_reward_then_tier(self, client, business_headers):
        response = client.delete(URL, headers=business_headers,
                                 json={'tier_name': 'Bronze', 'reward_id': 2})
        bronze = response.get_json()['program']['tiers'][0]
        assert [r['id'] for r in bronze['rewards']] == [1]

        response = client.delete(URL, headers=business_headers, json={'tier_name': 'Gold'})
        names = [t['name'] for t in response.get_json()['program']['tiers']]
        assert names == ['Bronze', 'Silver']

    def test_delete_unknown_tier(self, client, business_headers):
        response = client.delete(URL, headers=business_headers, json={'tier_name': 'Diamond'})
        assert response.status_code == 404

    def test_recalculate_tiers(self, client, business_headers, business, customer):
        client.post(f'/api/business/customers/{customer.id}/transactions',
                    headers=business_headers, json={'bill_amount': 150})
        loyalty = CustomerLoyalty.query.filter_by(customer_id=customer.id).one()
        loyalty.current_tier_name = 'Bronze'

        response = client.post(f'{URL}/recalculate-tiers', headers=business_headers)

        assert response.get_json() == {'success': True, 'total': 1, 'updated': 1}
        assert loyalty.current_tier_name == 'Silver'
