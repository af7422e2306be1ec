"""
Customer Service for Retenza.

The customer's side of the platform: profile, the shops they belong to,
the directory of approved shops and a shop's loyalty details.
"""
from datetime import date
from typing import Any, Dict, List

from ..extensions import db
from ..models import Business, Customer, CustomerLoyalty, LoyaltyProgram, Transaction
from ..utils.cache import cache, SHOP_DIRECTORY_KEY, SHOP_DIRECTORY_TIMEOUT
from ..utils.exceptions import CustomerNotFoundError, NotFoundError, ValidationError
from .loyalty_rules import find_tier, tier_progress

SHOP_TRANSACTIONS_LIMIT = 20


def parse_date(value: Any, field: str):
    if value in (None, ''):
        return None
    if not isinstance(value, str):
        raise ValidationError(f'{field} must be a YYYY-MM-DD date', field)
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        raise ValidationError(f'{field} must be a YYYY-MM-DD date', field)


def list_approved_shops() -> List[Dict[str, Any]]:
    """Directory of approved businesses, cached for five minutes."""
    shops = cache.get(SHOP_DIRECTORY_KEY)
    if shops is None:
        shops = [
            b.to_public_dict()
            for b in Business.query.filter_by(approved=True).order_by(Business.name.asc()).all()
        ]
        cache.set(SHOP_DIRECTORY_KEY, shops, timeout=SHOP_DIRECTORY_TIMEOUT)
    return shops


class CustomerService:
    """
    Usage:
        service = CustomerService(customer_id)
        shops = service.get_dashboard()
    """

    def __init__(self, customer_id: int):
        self.customer_id = customer_id

    def get_customer(self) -> Customer:
        customer = db.session.get(Customer, self.customer_id)
        if not customer:
            raise CustomerNotFoundError(self.customer_id)
        return customer

    # ==================== Profile ====================

    def update_profile(self, data: Dict[str, Any]) -> Customer:
        """Update profile fields; a named profile counts as setup complete."""
        customer = self.get_customer()

        if 'name' in data:
            name = str(data.get('name') or '').strip()
            if not name:
                raise ValidationError('name cannot be empty', 'name')
            customer.name = name
        if 'gender' in data:
            gender = data.get('gender') or None
            if gender is not None and gender not in Customer.GENDERS:
                raise ValidationError(f"gender must be one of: {', '.join(Customer.GENDERS)}", 'gender')
            customer.gender = gender
        if 'dob' in data:
            customer.dob = parse_date(data.get('dob'), 'dob')
        if 'anniversary' in data:
            customer.anniversary = parse_date(data.get('anniversary'), 'anniversary')

        if customer.name:
            customer.is_setup_complete = True

        db.session.commit()
        return customer

    # ==================== Shops ====================

    def get_dashboard(self) -> List[Dict[str, Any]]:
        """Shops the customer is enrolled at, with balance and tier."""
        rows = db.session.query(CustomerLoyalty, Business).join(
            Business, Business.id == CustomerLoyalty.business_id
        ).filter(
            CustomerLoyalty.customer_id == self.customer_id
        ).order_by(CustomerLoyalty.points.desc()).all()

        shops = []
        for loyalty, business in rows:
            entry = business.to_public_dict()
            entry.update({
                'points': loyalty.points,
                'redeemable_points': float(loyalty.redeemable_points or 0),
                'current_tier_name': loyalty.current_tier_name,
            })
            shops.append(entry)
        return shops

    def get_shop_detail(self, business_id: int) -> Dict[str, Any]:
        business = Business.query.filter_by(id=business_id, approved=True).first()
        if not business:
            raise NotFoundError('Business', business_id)

        program = LoyaltyProgram.query.filter_by(business_id=business_id).first()
        loyalty = CustomerLoyalty.query.filter_by(
            customer_id=self.customer_id,
            business_id=business_id,
        ).first()

        tiers = program.get_tiers() if program else []
        transactions = []
        current_tier = None
        progress = None
        if loyalty:
            transactions = Transaction.query.filter_by(
                customer_id=self.customer_id,
                business_id=business_id,
            ).order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(SHOP_TRANSACTIONS_LIMIT).all()
            tier = find_tier(tiers, loyalty.current_tier_name)
            current_tier = tier.to_dict() if tier else None
            progress = tier_progress(loyalty.points, tiers) if tiers else None

        return {
            'shop': business.to_public_dict(),
            'program': program.to_dict() if program else None,
            'loyalty': loyalty.to_dict() if loyalty else None,
            'current_tier': current_tier,
            'progress': progress,
            'transactions': [t.to_dict() for t in transactions],
        }
