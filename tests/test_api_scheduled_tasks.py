"""
Tests for the cron endpoints (/api/scheduled-tasks) and the health check.
"""
from datetime import datetime, timedelta

from retenza.extensions import db
from retenza.models import Session

CRON_HEADERS = {'X-Cron-Secret': 'cron-test-secret'}


class TestCronSecret:
    """Every cron endpoint requires CRON_SECRET."""

    def test_missing_secret(self, client):
        response = client.post('/api/scheduled-tasks/cleanup')
        assert response.status_code == 401

    def test_wrong_secret(self, client):
        response = client.post('/api/scheduled-tasks/cleanup', headers={'X-Cron-Secret': 'guess'})
        assert response.status_code == 401
        assert response.get_json()['error']['code'] == 'INVALID_TOKEN'

    def test_secret_as_query_param(self, client):
        response = client.get('/api/scheduled-tasks/cleanup?secret=cron-test-secret')
        assert response.status_code == 200

    def test_unconfigured_secret(self, app, client):
        app.config['CRON_SECRET'] = ''
        response = client.post('/api/scheduled-tasks/cleanup', headers=CRON_HEADERS)
        assert response.status_code == 503


class TestCleanup:
    """Tests for POST /api/scheduled-tasks/cleanup."""

    def test_cleanup(self, client, business):
        db.session.add(Session(id='stale', user_id=business.id, role='business',
                               expires_at=datetime.utcnow() - timedelta(hours=1)))
        db.session.commit()

        response = client.post('/api/scheduled-tasks/cleanup', headers=CRON_HEADERS)

        data = response.get_json()
        assert data['success'] is True
        assert data['result']['deleted_sessions'] == 1
        assert Session.query.count() == 0


class TestWinback:
    """Tests for POST /api/scheduled-tasks/winback."""

    def test_single_business_dry_run(self, client, business):
        response = client.post(f'/api/scheduled-tasks/winback?business_id={business.id}&dry_run=true',
                               headers=CRON_HEADERS)

        result = response.get_json()['result']
        assert result['dry_run'] is True
        assert result['inactive_customers'] == 0

    def test_all_businesses(self, client, business):
        response = client.post('/api/scheduled-tasks/winback?days=14', headers=CRON_HEADERS)
        assert response.get_json()['result']['businesses'] == 1


class TestHealth:
    """Tests for GET /health."""

    def test_health(self, client):
        response = client.get('/health')
        assert response.get_json() == {'status': 'healthy', 'service': 'retenza'}

    def test_unknown_route_uses_error_envelope(self, client):
        response = client.get('/api/does-not-exist')
        assert response.status_code == 404
        assert 'error' in response.get_json()
