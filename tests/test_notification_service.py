"""
Tests for NotificationService: templates, push delivery, subscriptions and
business broadcasts. pywebpush is patched by the autouse webpush_mock fixture.
"""
import json
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
import requests
from pywebpush import WebPushException

from retenza.extensions import db
from retenza.models import CustomerLoyalty, Notification, PushSubscription
from retenza.services.mission_service import MissionService
from retenza.services.notification_service import NotificationService
from retenza.utils.exceptions import (
    MissionNotFoundError,
    NotFoundError,
    TierNotFoundError,
    ValidationError,
)

from conftest import make_business, make_customer

SUBSCRIPTION = {
    'endpoint': 'https://push.example.com/abc',
    'keys': {'p256dh': 'p256dh-key', 'auth': 'auth-secret'},
}


def enroll(customer, business, tier_name='Bronze', points=0):
    db.session.add(CustomerLoyalty(
        customer_id=customer.id, business_id=business.id,
        points=points, redeemable_points=0, current_tier_name=tier_name,
    ))
    db.session.commit()


def gone_exception(status_code):
    response = MagicMock()
    response.status_code = status_code
    return WebPushException('gone', response=response)


class TestTemplates:
    """Tests for building payloads."""

    def test_build_uses_business_name(self, business):
        payload = NotificationService(business.id).build('points_earned', points=40)
        assert payload['title'] == 'Points Earned!'
        assert 'Corner Cafe' in payload['body']
        assert '40' in payload['body']
        assert payload['data']['type'] == 'points_earned'
        assert payload['data']['business_id'] == business.id

    def test_unknown_template(self, business):
        with pytest.raises(ValidationError):
            NotificationService(business.id).build('birthday')


class TestDelivery:
    """Tests for send and notify."""

    def test_notify_stores_without_subscription(self, business, customer, webpush_mock):
        result = NotificationService(business.id).notify(customer.id, 'points_earned', points=5)

        assert result['pushed'] is False
        assert Notification.query.count() == 1
        webpush_mock.assert_not_called()

    def test_notify_pushes_to_subscription(self, business, customer, webpush_mock):
        service = NotificationService(business.id)
        service.subscribe(customer.id, SUBSCRIPTION)

        result = service.notify(customer.id, 'tier_upgraded', tier_name='Gold')

        assert result['pushed'] is True
        kwargs = webpush_mock.call_args.kwargs
        assert kwargs['subscription_info'] == SUBSCRIPTION
        assert kwargs['vapid_private_key'] == 'test-private-key'
        payload = json.loads(kwargs['data'])
        assert payload['data']['notification_id'] == result['notification']['id']

    def test_gone_subscription_removed(self, business, customer, webpush_mock):
        service = NotificationService(business.id)
        service.subscribe(customer.id, SUBSCRIPTION)
        webpush_mock.side_effect = gone_exception(410)

        result = service.notify(customer.id, 'points_earned', points=5)

        assert result['pushed'] is False
        assert PushSubscription.query.count() == 0
        assert Notification.query.count() == 1

    def test_transient_failure_keeps_subscription(self, business, customer, webpush_mock):
        service = NotificationService(business.id)
        service.subscribe(customer.id, SUBSCRIPTION)
        webpush_mock.side_effect = gone_exception(500)

        service.notify(customer.id, 'points_earned', points=5)
        assert PushSubscription.query.count() == 1

    def test_unreachable_push_service_is_not_fatal(self, business, customer, webpush_mock):
        service = NotificationService(business.id)
        service.subscribe(customer.id, SUBSCRIPTION)
        webpush_mock.side_effect = requests.exceptions.Timeout('read timed out')

        result = service.notify(customer.id, 'points_earned', points=5)

        assert result['pushed'] is False
        assert PushSubscription.query.count() == 1
        assert Notification.query.count() == 1

    def test_missing_vapid_key_is_not_fatal(self, app, business, customer, webpush_mock):
        app.config['VAPID_PRIVATE_KEY'] = None
        service = NotificationService(business.id)
        service.subscribe(customer.id, SUBSCRIPTION)

        result = service.notify(customer.id, 'points_earned', points=5)
        assert result['pushed'] is False
        webpush_mock.assert_not_called()


class TestSubscriptions:
    """Tests for subscribe/unsubscribe and subscription copying."""

    def test_subscribe_upserts(self, business, customer):
        service = NotificationService(business.id)
        service.subscribe(customer.id, SUBSCRIPTION)
        service.subscribe(customer.id, dict(SUBSCRIPTION, endpoint='https://push.example.com/new'))

        records = PushSubscription.query.all()
        assert len(records) == 1
        assert records[0].endpoint == 'https://push.example.com/new'

    def test_subscribe_validates_keys(self, business, customer):
        with pytest.raises(ValidationError):
            NotificationService(business.id).subscribe(customer.id, {'endpoint': 'https://x'})

    def test_subscribe_unknown_business(self, customer):
        with pytest.raises(NotFoundError):
            NotificationService(999).subscribe(customer.id, SUBSCRIPTION)

    def test_unsubscribe(self, business, customer):
        service = NotificationService(business.id)
        service.subscribe(customer.id, SUBSCRIPTION)
        assert service.unsubscribe(customer.id) is True
        assert service.unsubscribe(customer.id) is False

    def test_ensure_subscription_copies_existing(self, business, customer):
        NotificationService(business.id).subscribe(customer.id, SUBSCRIPTION)
        other = make_business(phone='5550002', name='Book Nook')

        copy = NotificationService(other.id).ensure_subscription(customer.id)
        db.session.commit()

        assert copy.business_id == other.id
        assert copy.endpoint == SUBSCRIPTION['endpoint']


class TestInbox:
    """Tests for listing and reading notifications."""

    def test_mark_read(self, business, customer):
        service = NotificationService(business.id)
        created = service.notify(customer.id, 'points_earned', points=1)['notification']

        assert NotificationService.unread_count(customer.id) == 1
        notification = NotificationService.mark_read(customer.id, created['id'])
        assert notification.is_read is True
        assert notification.read_at is not None
        assert NotificationService.unread_count(customer.id) == 0

    def test_cannot_read_other_customers_notification(self, business, customer):
        created = NotificationService(business.id).notify(customer.id, 'points_earned', points=1)['notification']
        other = make_customer(phone='5559002')
        with pytest.raises(NotFoundError):
            NotificationService.mark_read(other.id, created['id'])


class TestBroadcasts:
    """Tests for business broadcasts."""

    def test_custom_reaches_enrolled_customers(self, business, customer):
        enroll(customer, business)
        enroll(make_customer(phone='5559002'), business)
        make_customer(phone='5559003')  # not enrolled

        result = NotificationService(business.id).send_custom('Hello', 'New menu today')

        assert result['stored'] == 2
        assert Notification.query.filter_by(type='custom', title='Hello').count() == 2

    def test_custom_requires_title_and_body(self, business):
        with pytest.raises(ValidationError):
            NotificationService(business.id).send_custom('', 'body')

    def test_custom_with_empty_audience_sends_nothing(self, business, customer):
        enroll(customer, business)

        result = NotificationService(business.id).send_custom('Hello', 'New menu today', customer_ids=[])

        assert result['stored'] == 0
        assert Notification.query.count() == 0

    def test_custom_survives_unreachable_push_service(self, business, customer, webpush_mock):
        enroll(customer, business)
        NotificationService(business.id).subscribe(customer.id, SUBSCRIPTION)
        webpush_mock.side_effect = requests.exceptions.ConnectionError('push service unreachable')

        result = NotificationService(business.id).send_custom('Hello', 'New menu today')

        assert result['stored'] == 1
        assert result['failed'] == 1
        assert result['sent'] == 0

    def test_tier_rewards_targets_tier(self, business, customer):
        enroll(customer, business, 'Silver', 150)
        enroll(make_customer(phone='5559002'), business, 'Bronze')

        result = NotificationService(business.id).send_tier_rewards('Silver')
        assert result['stored'] == 1

    def test_tier_rewards_unknown_tier(self, business):
        with pytest.raises(TierNotFoundError):
            NotificationService(business.id).send_tier_rewards('Diamond')

    def test_trending_mission(self, business, customer):
        enroll(customer, business, 'Gold', 600)
        enroll(make_customer(phone='5559002'), business, 'Bronze')
        mission = MissionService(business.id).create_mission({
            'title': 'Gold Rush',
            'description': 'Spend 500 this week',
            'expires_at': (datetime.utcnow() + timedelta(days=3)).isoformat(),
            'applicable_tiers': ['Gold'],
        })

        result = NotificationService(business.id).send_trending_mission(mission.id)
        assert result['stored'] == 1

    def test_trending_mission_missing(self, business):
        with pytest.raises(MissionNotFoundError):
            NotificationService(business.id).send_trending_mission(999)
