"""
Tests for scheduled tasks: cleanup, mission expiration and win-back.
"""
from datetime import datetime, timedelta

import requests

from retenza.extensions import db
from retenza.models import (
    CustomerLoyalty,
    Mission,
    MissionRegistry,
    MissionStatus,
    Notification,
    Session,
    Transaction,
)
from retenza.services.notification_service import NotificationService
from retenza.services.scheduled_tasks import scheduled_tasks_service

from conftest import make_business, make_customer

SUBSCRIPTION = {
    'endpoint': 'https://push.example.com/abc',
    'keys': {'p256dh': 'p256dh-key', 'auth': 'auth-secret'},
}


def add_mission(business, expires_at, is_active=True):
    mission = Mission(
        business_id=business.id,
        title='Lunch rush',
        description='Visit at noon',
        applicable_tiers=['all'],
        filters={},
        is_active=is_active,
        expires_at=expires_at,
    )
    db.session.add(mission)
    db.session.commit()
    return mission


def enroll(customer, business, created_at):
    db.session.add(CustomerLoyalty(
        customer_id=customer.id, business_id=business.id,
        points=0, redeemable_points=0, current_tier_name='Bronze',
        created_at=created_at,
    ))
    db.session.commit()


class TestExpireMissions:
    """Tests for mission expiration."""

    def test_expired_mission_deactivated_and_registry_failed(self, business, customer):
        now = datetime.utcnow()
        expired = add_mission(business, now - timedelta(hours=1))
        live = add_mission(business, now + timedelta(days=1))
        registry = MissionRegistry(
            customer_id=customer.id, business_id=business.id, mission_id=expired.id,
            status=MissionStatus.IN_PROGRESS.value,
        )
        db.session.add(registry)
        db.session.commit()

        result = scheduled_tasks_service.expire_missions(now)

        assert result == {'expired_missions': 1, 'failed_registries': 1, 'dry_run': False}
        assert expired.is_active is False
        assert live.is_active is True
        assert registry.status == 'failed'
        assert registry.completed_at == now

    def test_dry_run_changes_nothing(self, business):
        now = datetime.utcnow()
        expired = add_mission(business, now - timedelta(hours=1))

        result = scheduled_tasks_service.expire_missions(now, dry_run=True)

        assert result['expired_missions'] == 1
        assert expired.is_active is True

    def test_cleanup_purges_expired_sessions(self, business):
        now = datetime.utcnow()
        db.session.add(Session(id='old', user_id=business.id, role='business',
                               expires_at=now - timedelta(minutes=1)))
        db.session.add(Session(id='live', user_id=business.id, role='business',
                               expires_at=now + timedelta(hours=1)))
        db.session.commit()

        result = scheduled_tasks_service.run_cleanup(now)

        assert result['deleted_sessions'] == 1
        assert db.session.get(Session, 'live') is not None


class TestWinback:
    """Tests for inactivity win-back notifications."""

    def test_inactive_customers_notified_once(self, business):
        now = datetime.utcnow()
        idle = make_customer(phone='1')
        active = make_customer(phone='2')
        enroll(idle, business, now - timedelta(days=60))
        enroll(active, business, now - timedelta(days=60))
        db.session.add(Transaction(customer_id=active.id, business_id=business.id,
                                   bill_amount=10, points_awarded=10,
                                   created_at=now - timedelta(days=2)))
        db.session.commit()

        result = scheduled_tasks_service.send_inactivity_winbacks(business.id, days=30, now=now)

        assert result['inactive_customers'] == 1
        assert result['stored'] == 1
        notification = Notification.query.filter_by(type='inactivity_winback').one()
        assert notification.customer_id == idle.id

        again = scheduled_tasks_service.send_inactivity_winbacks(business.id, days=30, now=now)
        assert again['inactive_customers'] == 0

    def test_recent_enrollment_not_inactive(self, business, customer):
        enroll(customer, business, datetime.utcnow() - timedelta(days=3))
        result = scheduled_tasks_service.send_inactivity_winbacks(business.id, days=30)
        assert result['inactive_customers'] == 0

    def test_dry_run_stores_nothing(self, business, customer):
        now = datetime.utcnow()
        enroll(customer, business, now - timedelta(days=45))

        result = scheduled_tasks_service.send_inactivity_winbacks(business.id, days=30, now=now, dry_run=True)

        assert result['inactive_customers'] == 1
        assert Notification.query.count() == 0

    def test_all_winbacks_only_approved_businesses(self, business, customer):
        now = datetime.utcnow()
        pending = make_business(phone='5550002', name='Pending', approved=False)
        enroll(customer, business, now - timedelta(days=45))
        enroll(customer, pending, now - timedelta(days=45))

        totals = scheduled_tasks_service.send_all_winbacks(days=30, now=now)

        assert totals['businesses'] == 1
        assert totals['stored'] == 1

    def test_all_winbacks_continue_when_push_service_unreachable(self, business, customer, webpush_mock):
        now = datetime.utcnow()
        other = make_business(phone='5550002', name='Other Cafe')
        for each in (business, other):
            enroll(customer, each, now - timedelta(days=45))
            NotificationService(each.id).subscribe(customer.id, SUBSCRIPTION)
        webpush_mock.side_effect = requests.exceptions.ConnectionError('push service unreachable')

        totals = scheduled_tasks_service.send_all_winbacks(days=30, now=now)

        assert totals['businesses'] == 2
        assert totals['stored'] == 2
        assert totals['failed'] == 2
        assert Notification.query.filter_by(type='inactivity_winback').count() == 2
