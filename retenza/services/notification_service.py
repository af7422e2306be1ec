"""
Notification Service for Retenza.

Stores customer notifications and delivers them as Web Push messages for:
- Points earned on a transaction
- Tier upgrades
- Goal-gradient nudges (close to the next tier)
- Mission started / completed
- Inactivity win-back
- Business broadcasts (custom message, tier rewards, trending mission)

Delivery Strategy
-----------------
Every notification is written to the notifications table first, so the
in-app inbox is complete even when push fails. Push is best-effort: the
push service being down, VAPID keys missing or a subscription having gone
stale are logged and counted, never raised into the business operation
that triggered the notification. Subscriptions the push service reports as
gone (404/410) are deleted.

Configuration:
- VAPID_PUBLIC_KEY / VAPID_PRIVATE_KEY: application server keys
- VAPID_CLAIMS_EMAIL: "mailto:" contact sent in the VAPID claims
"""
import json
import logging
from datetime import datetime
from typing import Optional, Dict, Any, List, Iterable

from flask import current_app
import requests
from pywebpush import webpush, WebPushException

from ..extensions import db
from ..models import Business, CustomerLoyalty, Mission, Notification, PushSubscription
from ..utils.exceptions import (
    ConfigurationError,
    MissionNotFoundError,
    NotFoundError,
    PushDeliveryError,
    RetenzaError,
    TierNotFoundError,
    ValidationError,
)
from .loyalty_rules import find_tier, is_mission_eligible

logger = logging.getLogger(__name__)

# Push services answer 404/410 for subscriptions that no longer exist
GONE_STATUS_CODES = (404, 410)

PUSH_TTL_SECONDS = 24 * 60 * 60


def deliver_push(subscription: PushSubscription, payload: Dict[str, Any]) -> None:
    """
    Send one Web Push message.

    Raises:
        ConfigurationError: VAPID private key not configured
        PushDeliveryError: Push service rejected the message or could not be reached
    """
    private_key = current_app.config.get('VAPID_PRIVATE_KEY')
    if not private_key:
        raise ConfigurationError('VAPID keys are not configured')

    try:
        webpush(
            subscription_info=subscription.to_subscription_info(),
            data=json.dumps(payload),
            vapid_private_key=private_key,
            # pywebpush adds aud/exp to the claims dict, so build a fresh one
            vapid_claims={'sub': current_app.config.get('VAPID_CLAIMS_EMAIL')},
            ttl=PUSH_TTL_SECONDS,
        )
    except WebPushException as e:
        status_code = e.response.status_code if e.response is not None else None
        raise PushDeliveryError(f'Push delivery failed: {e}', status_code) from e
    except requests.exceptions.RequestException as e:
        raise PushDeliveryError(f'Push service unreachable: {e}') from e


class NotificationService:
    """
    Service for storing and pushing customer notifications.

    Usage:
        service = NotificationService(business_id)
        service.notify(customer_id, 'points_earned', points=120)
    """

    # Templates are formatted with the business name plus per-call context
    DEFAULT_TEMPLATES = {
        'points_earned': {
            'title': 'Points Earned!',
            'body': "You've earned {points} points at {business_name}! Keep shopping to unlock more rewards.",
            'tag': 'points-earned',
        },
        'tier_upgraded': {
            'title': 'New Tier Unlocked!',
            'body': "Congratulations! You're now a {tier_name} member at {business_name}.",
            'tag': 'tier-upgraded',
            'require_interaction': True,
        },
        'goal_nudge': {
            'title': 'Almost There!',
            'body': "You're {percentage}% of the way to {next_tier} at {business_name}. Only {points_needed} points to go!",
            'tag': 'goal-nudge',
            'require_interaction': True,
        },
        'inactivity_winback': {
            'title': 'We Miss You!',
            'body': "Haven't seen you at {business_name} lately. Come back for exclusive offers!",
            'tag': 'inactivity-winback',
        },
        'trending_mission': {
            'title': 'Trending Mission!',
            'body': '"{mission_title}" is trending at {business_name}. Join the challenge now!',
            'tag': 'trending-mission',
        },
        'tier_rewards': {
            'title': 'Tier Benefits!',
            'body': 'As a {tier_name} member at {business_name}, you have exclusive rewards waiting!',
            'tag': 'tier-rewards',
            'require_interaction': True,
        },
        'mission_started': {
            'title': 'Mission Started',
            'body': 'You joined "{mission_title}" at {business_name}. Good luck!',
            'tag': 'mission-started',
        },
        'mission_completed': {
            'title': 'Mission Complete!',
            'body': 'You completed "{mission_title}" at {business_name}. Enjoy your reward!',
            'tag': 'mission-completed',
            'require_interaction': True,
        },
        'custom': {
            'title': '{title}',
            'body': '{body}',
            'tag': 'custom',
        },
    }

    def __init__(self, business_id: int = None):
        self.business_id = business_id
        self._business = None

    @property
    def business(self) -> Optional[Business]:
        if self._business is None and self.business_id:
            self._business = db.session.get(Business, self.business_id)
        return self._business

    # ==================== Building ====================

    def build(self, template: str, **context) -> Dict[str, Any]:
        """Render a template into the push payload shape."""
        definition = self.DEFAULT_TEMPLATES.get(template)
        if not definition:
            raise ValidationError(f'Unknown notification template: {template}', 'template')

        context.setdefault('business_name', self.business.name if self.business else 'Retenza')

        data = {'type': template, 'business_id': self.business_id}
        data.update({k: v for k, v in context.items() if k not in ('title', 'body')})

        return {
            'title': definition['title'].format(**context),
            'body': definition['body'].format(**context),
            'tag': definition['tag'],
            'renotify': True,
            'require_interaction': definition.get('require_interaction', False),
            'data': data,
        }

    def create(self, customer_id: int, template: str, **context) -> Notification:
        """Add a notification to the session without committing."""
        payload = self.build(template, **context)
        notification = Notification(
            customer_id=customer_id,
            business_id=self.business_id,
            type=template,
            title=payload['title'],
            body=payload['body'],
            data=payload['data'],
        )
        db.session.add(notification)
        return notification

    # ==================== Delivery ====================

    def send(self, notification: Notification) -> bool:
        """
        Push a stored notification to the customer's subscription for this business.

        Returns:
            True if a push was delivered, False if there was no subscription
            or delivery failed.
        """
        subscription = PushSubscription.query.filter_by(
            customer_id=notification.customer_id,
            business_id=notification.business_id,
        ).first()
        if not subscription:
            return False

        payload = {
            'title': notification.title,
            'body': notification.body,
            'tag': notification.data.get('type') if notification.data else notification.type,
            'data': dict(notification.data or {}, notification_id=notification.id),
        }

        try:
            deliver_push(subscription, payload)
            return True
        except PushDeliveryError as e:
            logger.warning(
                f'[Push] Delivery to customer {notification.customer_id} failed: {e.message}'
            )
            if e.status_code in GONE_STATUS_CODES:
                subscription_id = subscription.id
                db.session.delete(subscription)
                db.session.commit()
                logger.info(f'[Push] Removed stale subscription {subscription_id}')
            return False
        except RetenzaError as e:
            logger.warning(f'[Push] Delivery skipped: {e.message}')
            return False

    def notify(self, customer_id: int, template: str, **context) -> Dict[str, Any]:
        """Store and push a single notification."""
        notification = self.create(customer_id, template, **context)
        db.session.commit()
        pushed = self.send(notification)
        return {'notification': notification.to_dict(), 'pushed': pushed}

    def send_all(self, notifications: Iterable[Notification]) -> Dict[str, int]:
        """Push notifications that were already committed."""
        sent = 0
        failed = 0
        for notification in notifications:
            if self.send(notification):
                sent += 1
            else:
                failed += 1
        return {'sent': sent, 'failed': failed}

    # ==================== Subscriptions ====================

    def subscribe(self, customer_id: int, subscription: Dict[str, Any]) -> PushSubscription:
        """Create or refresh the customer's subscription for this business."""
        endpoint = (subscription or {}).get('endpoint')
        keys = (subscription or {}).get('keys') or {}
        if not endpoint or not keys.get('p256dh') or not keys.get('auth'):
            raise ValidationError('subscription requires endpoint and keys.p256dh/keys.auth', 'subscription')

        if not self.business:
            raise NotFoundError('Business', self.business_id)

        record = PushSubscription.query.filter_by(
            customer_id=customer_id,
            business_id=self.business_id,
        ).first()

        if record:
            record.endpoint = endpoint
            record.p256dh = keys['p256dh']
            record.auth = keys['auth']
        else:
            record = PushSubscription(
                customer_id=customer_id,
                business_id=self.business_id,
                endpoint=endpoint,
                p256dh=keys['p256dh'],
                auth=keys['auth'],
            )
            db.session.add(record)

        db.session.commit()
        return record

    def unsubscribe(self, customer_id: int) -> bool:
        deleted = PushSubscription.query.filter_by(
            customer_id=customer_id,
            business_id=self.business_id,
        ).delete()
        db.session.commit()
        return deleted > 0

    def ensure_subscription(self, customer_id: int) -> Optional[PushSubscription]:
        """
        Copy an existing subscription from another business.

        A customer who granted push permission once is subscribed to every
        business they join. Does not commit.
        """
        existing = PushSubscription.query.filter_by(
            customer_id=customer_id,
            business_id=self.business_id,
        ).first()
        if existing:
            return existing

        other = PushSubscription.query.filter_by(customer_id=customer_id).order_by(
            PushSubscription.updated_at.desc()
        ).first()
        if not other:
            return None

        copy = PushSubscription(
            customer_id=customer_id,
            business_id=self.business_id,
            endpoint=other.endpoint,
            p256dh=other.p256dh,
            auth=other.auth,
        )
        db.session.add(copy)
        return copy

    # ==================== Inbox ====================

    @staticmethod
    def list_for_customer(customer_id: int, business_id: int = None, limit: int = 50) -> List[Notification]:
        query = Notification.query.filter_by(customer_id=customer_id)
        if business_id:
            query = query.filter_by(business_id=business_id)
        return query.order_by(Notification.sent_at.desc(), Notification.id.desc()).limit(limit).all()

    @staticmethod
    def mark_read(customer_id: int, notification_id: int) -> Notification:
        notification = Notification.query.filter_by(id=notification_id, customer_id=customer_id).first()
        if not notification:
            raise NotFoundError('Notification', notification_id)

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.utcnow()
            db.session.commit()
        return notification

    @staticmethod
    def unread_count(customer_id: int, business_id: int = None) -> int:
        query = Notification.query.filter_by(customer_id=customer_id, is_read=False)
        if business_id:
            query = query.filter_by(business_id=business_id)
        return query.count()

    # ==================== Business Broadcasts ====================

    def _enrolled_loyalties(self, customer_ids: List[int] = None):
        query = CustomerLoyalty.query.filter_by(business_id=self.business_id)
        if customer_ids is not None:
            query = query.filter(CustomerLoyalty.customer_id.in_(customer_ids))
        return query.all()

    def _broadcast(self, customer_ids: Iterable[int], template: str, **context) -> Dict[str, Any]:
        notifications = [self.create(cid, template, **context) for cid in customer_ids]
        db.session.commit()

        result = self.send_all(notifications)
        result['stored'] = len(notifications)

        current_app.logger.info(
            f'[Notifications] Business {self.business_id} sent {template}: '
            f"{result['stored']} stored, {result['sent']} pushed, {result['failed']} not pushed"
        )
        return result

    def send_custom(self, title: str, body: str, customer_ids: List[int] = None) -> Dict[str, Any]:
        """Free-form message to every enrolled customer (or a subset)."""
        title = (title or '').strip()
        body = (body or '').strip()
        if not title or not body:
            raise ValidationError('title and body are required')

        recipients = [l.customer_id for l in self._enrolled_loyalties(customer_ids)]
        return self._broadcast(recipients, 'custom', title=title, body=body)

    def send_tier_rewards(self, tier_name: str, customer_ids: List[int] = None) -> Dict[str, Any]:
        """Remind members of one tier about their rewards."""
        program = self.business.loyalty_program if self.business else None
        tier = find_tier(program.get_tiers(), tier_name) if program else None
        if not tier:
            raise TierNotFoundError(tier_name)

        recipients = [
            l.customer_id for l in self._enrolled_loyalties(customer_ids)
            if l.current_tier_name == tier.name
        ]
        return self._broadcast(
            recipients,
            'tier_rewards',
            tier_name=tier.name,
            rewards=[r.description for r in tier.rewards],
        )

    def send_trending_mission(self, mission_id: int) -> Dict[str, Any]:
        """Promote an active mission to the customers it applies to."""
        mission = Mission.query.filter_by(id=mission_id, business_id=self.business_id).first()
        if not mission or not mission.is_active or mission.is_expired():
            raise MissionNotFoundError(mission_id)

        recipients = [
            l.customer_id for l in self._enrolled_loyalties()
            if is_mission_eligible(mission.applicable_tiers, l.current_tier_name)
        ]
        return self._broadcast(
            recipients,
            'trending_mission',
            mission_id=mission.id,
            mission_title=mission.title,
        )
