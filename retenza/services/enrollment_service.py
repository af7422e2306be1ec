"""
Enrollment Service - business-side customer management.

Businesses enroll customers by phone number, look them up at the counter
and review their history. A customer joins a business either here
(manual enrollment, entry tier at 0 points) or implicitly on their first
transaction (see PointsService).
"""
from datetime import datetime
from typing import Optional, Dict, Any, List

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Customer, CustomerLoyalty, RewardRedemption, Transaction
from ..utils.exceptions import CustomerNotFoundError, ValidationError
from .loyalty_rules import find_tier, resolve_tier, tier_progress
from .notification_service import NotificationService
from .points_service import month_start
from .tier_service import TierService

RECENT_TRANSACTIONS_LIMIT = 50


def normalize_phone(phone_number: Any) -> str:
    phone = str(phone_number or '').strip().replace(' ', '').replace('-', '')
    if not phone:
        raise ValidationError('phone_number is required', 'phone_number')
    return phone


class EnrollmentService:
    """
    Service for a business's view of its customers.

    Usage:
        service = EnrollmentService(business_id)
        result = service.enroll_by_phone('+15551234567')
    """

    def __init__(self, business_id: int):
        self.business_id = business_id
        self.tier_service = TierService(business_id)

    # ==================== Enrollment ====================

    def enroll_by_phone(self, phone_number: Any) -> Dict[str, Any]:
        """
        Enroll an existing customer at the entry tier.

        Idempotent: an already-enrolled customer is returned with added=False.

        Raises:
            CustomerNotFoundError: No customer account with that phone number
        """
        customer = self._find_customer(phone_number)

        loyalty = self._get_loyalty(customer.id)
        if loyalty:
            return {'added': False, 'customer': customer.to_dict(), 'loyalty': loyalty.to_dict()}

        loyalty = self._enroll(customer)
        db.session.commit()

        current_app.logger.info(f'[Enrollment] Business {self.business_id} enrolled customer {customer.id}')
        return {'added': True, 'customer': customer.to_dict(), 'loyalty': loyalty.to_dict()}

    def lookup_by_phone(self, phone_number: Any, now: datetime = None) -> Dict[str, Any]:
        """
        Counter lookup: auto-enrolls the customer and returns their current
        tier rewards with redemption counts.
        """
        now = now or datetime.utcnow()
        customer = self._find_customer(phone_number)

        loyalty = self._get_loyalty(customer.id)
        enrolled = False
        if not loyalty:
            loyalty = self._enroll(customer)
            db.session.commit()
            enrolled = True

        program = self.tier_service.get_program()
        tiers = program.get_tiers() if program else []
        tier = find_tier(tiers, loyalty.current_tier_name)

        rewards = []
        if tier:
            totals = self._redemption_counts(customer.id)
            monthly = self._redemption_counts(customer.id, since=month_start(now))
            for reward in tier.rewards:
                entry = reward.to_dict()
                entry['redeemed_count'] = totals.get(reward.id, 0)
                entry['monthly_redeemed_count'] = monthly.get(reward.id, 0)
                if reward.usage_limit:
                    entry['remaining_this_month'] = max(0, reward.usage_limit - entry['monthly_redeemed_count'])
                rewards.append(entry)

        return {
            'customer': customer.to_dict(),
            'loyalty': loyalty.to_dict(),
            'enrolled': enrolled,
            'current_tier': tier.to_dict() if tier else None,
            'rewards': rewards,
            'progress': tier_progress(loyalty.points, tiers) if tiers else None,
            'points_rate': program.points_rate if program else None,
        }

    # ==================== Listing ====================

    def list_customers(self) -> List[Dict[str, Any]]:
        last_tx = db.session.query(
            Transaction.customer_id,
            func.max(Transaction.created_at).label('last_transaction_at'),
            func.count(Transaction.id).label('transaction_count'),
        ).filter(
            Transaction.business_id == self.business_id
        ).group_by(Transaction.customer_id).subquery()

        rows = db.session.query(
            CustomerLoyalty, Customer, last_tx.c.last_transaction_at, last_tx.c.transaction_count
        ).join(
            Customer, Customer.id == CustomerLoyalty.customer_id
        ).outerjoin(
            last_tx, last_tx.c.customer_id == CustomerLoyalty.customer_id
        ).filter(
            CustomerLoyalty.business_id == self.business_id
        ).order_by(CustomerLoyalty.points.desc()).all()

        customers = []
        for loyalty, customer, last_at, tx_count in rows:
            customers.append({
                'id': customer.id,
                'name': customer.name,
                'phone_number': customer.phone_number,
                'points': loyalty.points,
                'redeemable_points': float(loyalty.redeemable_points or 0),
                'current_tier_name': loyalty.current_tier_name,
                'joined_at': loyalty.created_at.isoformat() if loyalty.created_at else None,
                'last_transaction_at': last_at.isoformat() if last_at else None,
                'transaction_count': tx_count or 0,
            })
        return customers

    def get_customer_detail(self, customer_id: int) -> Dict[str, Any]:
        customer = db.session.get(Customer, customer_id)
        loyalty = self._get_loyalty(customer_id) if customer else None
        if not customer or not loyalty:
            raise CustomerNotFoundError(customer_id)

        transactions = Transaction.query.filter_by(
            business_id=self.business_id,
            customer_id=customer_id,
        ).order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(RECENT_TRANSACTIONS_LIMIT).all()

        return {
            'customer': customer.to_dict(),
            'loyalty': loyalty.to_dict(),
            'transactions': [t.to_dict() for t in transactions],
        }

    # ==================== Helpers ====================

    def _find_customer(self, phone_number: Any) -> Customer:
        phone = normalize_phone(phone_number)
        customer = Customer.query.filter_by(phone_number=phone).first()
        if not customer:
            raise CustomerNotFoundError(phone)
        return customer

    def _get_loyalty(self, customer_id: int) -> Optional[CustomerLoyalty]:
        return CustomerLoyalty.query.filter_by(
            customer_id=customer_id,
            business_id=self.business_id,
        ).first()

    def _enroll(self, customer: Customer) -> CustomerLoyalty:
        """Create the loyalty row at 0 points on the entry tier. Does not commit."""
        program = self.tier_service.ensure_default_tier()
        loyalty = CustomerLoyalty(
            customer_id=customer.id,
            business_id=self.business_id,
            points=0,
            redeemable_points=0,
            current_tier_name=resolve_tier(0, program.get_tiers()),
        )
        db.session.add(loyalty)
        NotificationService(self.business_id).ensure_subscription(customer.id)
        return loyalty

    def _redemption_counts(self, customer_id: int, since: datetime = None) -> Dict[int, int]:
        query = db.session.query(
            RewardRedemption.reward_id, func.count(RewardRedemption.id)
        ).filter(
            RewardRedemption.customer_id == customer_id,
            RewardRedemption.business_id == self.business_id,
        )
        if since is not None:
            query = query.filter(RewardRedemption.redeemed_at >= since)
        return dict(query.group_by(RewardRedemption.reward_id).all())
