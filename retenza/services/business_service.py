"""
Business Service for Retenza.

Profile management and dashboard for a business, plus the platform admin
operations on businesses (listing, approval, deletion).
"""
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List

from flask import current_app

from ..extensions import db
from ..models import (
    Business,
    CustomerLoyalty,
    LoyaltyProgram,
    Mission,
    MissionRegistry,
    Notification,
    PushSubscription,
    RewardRedemption,
    Session,
    Transaction,
)
from ..utils.cache import invalidate_shop_directory
from ..utils.exceptions import NotFoundError, ValidationError
from .enrollment_service import EnrollmentService


class BusinessService:
    """
    Service for one business's profile and dashboard.

    Usage:
        service = BusinessService(business_id)
        stats = service.get_dashboard()
    """

    def __init__(self, business_id: int):
        self.business_id = business_id

    def get_business(self) -> Business:
        business = db.session.get(Business, self.business_id)
        if not business:
            raise NotFoundError('Business', self.business_id)
        return business

    # ==================== Profile ====================

    def update_profile(self, data: Dict[str, Any]) -> Business:
        business = self.get_business()

        for field in Business.PROFILE_FIELDS:
            if field not in data:
                continue
            value = data[field]
            if field == 'additional_info':
                if value is not None and not isinstance(value, dict):
                    raise ValidationError('additional_info must be an object', field)
                value = value or {}
            elif value is not None:
                value = str(value).strip() or None
            if field == 'name' and not value:
                raise ValidationError('Business name cannot be empty', 'name')
            if field == 'email' and value and '@' not in value:
                raise ValidationError('email is not valid', 'email')
            setattr(business, field, value)

        db.session.commit()
        invalidate_shop_directory()
        return business

    # ==================== Dashboard ====================

    def get_dashboard(self, now: datetime = None) -> Dict[str, Any]:
        now = now or datetime.utcnow()
        business = self.get_business()

        def transactions_since(since: datetime) -> int:
            return Transaction.query.filter(
                Transaction.business_id == self.business_id,
                Transaction.created_at >= since,
            ).count()

        tier_counts = {}
        for loyalty in CustomerLoyalty.query.filter_by(business_id=self.business_id).all():
            key = loyalty.current_tier_name or 'Unassigned'
            tier_counts[key] = tier_counts.get(key, 0) + 1

        active_missions = Mission.query.filter(
            Mission.business_id == self.business_id,
            Mission.is_active.is_(True),
            Mission.expires_at > now,
        ).count()

        return {
            'business': business.to_dict(),
            'customers': EnrollmentService(self.business_id).list_customers(),
            'stats': {
                'total_customers': sum(tier_counts.values()),
                'customers_by_tier': tier_counts,
                'transactions_last_week': transactions_since(now - timedelta(days=7)),
                'transactions_last_month': transactions_since(now - timedelta(days=30)),
                'active_missions': active_missions,
            },
        }

    # ==================== Admin ====================

    @staticmethod
    def list_businesses(approved: Optional[bool] = None) -> List[Business]:
        query = Business.query
        if approved is not None:
            query = query.filter_by(approved=approved)
        return query.order_by(Business.created_at.desc(), Business.id.desc()).all()

    @staticmethod
    def set_approval(business_id: int, approved: Any) -> Business:
        if not isinstance(approved, bool):
            raise ValidationError('approved must be a boolean', 'approved')

        business = db.session.get(Business, business_id)
        if not business:
            raise NotFoundError('Business', business_id)

        business.approved = approved
        db.session.commit()
        invalidate_shop_directory()

        current_app.logger.info(
            f"[Admin] Business {business_id} {'approved' if approved else 'unapproved'}"
        )
        return business

    @staticmethod
    def delete_business(business_id: int) -> None:
        """Delete a business and everything it owns."""
        if not db.session.get(Business, business_id):
            raise NotFoundError('Business', business_id)

        for model in (RewardRedemption, Transaction, MissionRegistry, Mission, Notification,
                      PushSubscription, CustomerLoyalty, LoyaltyProgram):
            model.query.filter_by(business_id=business_id).delete()
        Session.query.filter_by(user_id=business_id, role='business').delete()
        Business.query.filter_by(id=business_id).delete()

        db.session.commit()
        invalidate_shop_directory()

        current_app.logger.info(f'[Admin] Deleted business {business_id}')
