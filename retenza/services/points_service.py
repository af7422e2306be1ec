"""
Points Service for Retenza.

Records transactions and keeps each customer's running balance and cached
tier in sync.

Award Flow:
1. Lock the customer's loyalty row at the business (auto-enroll if missing)
2. points_awarded = floor(bill_amount * points_rate)
3. Append the Transaction and add points_awarded to the balance
4. Re-resolve current_tier_name from the new balance
5. After commit: points_earned, tier_upgraded and goal_nudge notifications

Checkout extends the award with redeemable points, tier rewards redeemed
against the bill, and cashback accrual from the customer's current tier.
"""
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Dict, Any, List

from flask import current_app

from ..extensions import db
from ..models import Customer, CustomerLoyalty, RewardRedemption, Transaction
from ..utils.exceptions import (
    CustomerNotFoundError,
    InsufficientPointsError,
    LimitExceededError,
    ProgramNotFoundError,
    ValidationError,
)
from .loyalty_rules import (
    Reward,
    compute_points_awarded,
    find_tier,
    resolve_tier,
    should_send_goal_nudge,
    tier_progress,
    validate_bill_amount,
)
from .notification_service import NotificationService

CENT = Decimal('0.01')


def month_start(now: datetime) -> datetime:
    return datetime(now.year, now.month, 1)


def monthly_redemption_count(customer_id: int, business_id: int, reward_id: int,
                             now: datetime = None) -> int:
    """Redemptions of one reward by one customer in the current calendar month."""
    now = now or datetime.utcnow()
    return RewardRedemption.query.filter(
        RewardRedemption.customer_id == customer_id,
        RewardRedemption.business_id == business_id,
        RewardRedemption.reward_id == reward_id,
        RewardRedemption.redeemed_at >= month_start(now),
    ).count()


class PointsService:
    """
    Service for awarding points and processing checkouts at one business.

    Usage:
        service = PointsService(business_id)
        result = service.award_points(customer_id, bill_amount=250)
    """

    def __init__(self, business_id: int):
        self.business_id = business_id
        self.notifications = NotificationService(business_id)

    # ==================== Award ====================

    def award_points(self, customer_id: int, bill_amount: int) -> Dict[str, Any]:
        """
        Record a transaction and award points for it.

        Raises:
            ValidationError: bill_amount is not a positive integer
            CustomerNotFoundError: Unknown customer
            ProgramNotFoundError: Business has no loyalty program
        """
        validate_bill_amount(bill_amount)
        program = self._require_program()
        try:
            loyalty = self._lock_loyalty(customer_id, program)
            result = self._apply_award(loyalty, program, bill_amount)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        result['notifications'] = self._send_award_notifications(loyalty, program, result)
        return self._serialize(result, loyalty)

    # ==================== Checkout ====================

    def checkout(
        self,
        customer_id: int,
        bill_amount: int,
        redeemable_points_used: Any = 0,
        reward_ids: List[int] = None,
        now: datetime = None
    ) -> Dict[str, Any]:
        """
        Settle a bill: apply redeemable points and tier rewards, credit
        cashback, then award points on the full bill.

        Returns:
            Dict with total_discount, final_amount, cashback_earned and the
            award result

        Raises:
            InsufficientPointsError: More redeemable points used than available
            ValidationError: Reward not redeemable at the customer's tier
            LimitExceededError: Reward's monthly usage limit reached
        """
        now = now or datetime.utcnow()
        validate_bill_amount(bill_amount)

        if isinstance(redeemable_points_used, bool) or not isinstance(redeemable_points_used, (int, float)):
            raise ValidationError('redeemable_points_used must be a number', 'redeemable_points_used')
        if redeemable_points_used < 0:
            raise ValidationError('redeemable_points_used cannot be negative', 'redeemable_points_used')
        used = Decimal(str(redeemable_points_used)).quantize(CENT, rounding=ROUND_HALF_UP)

        program = self._require_program()
        try:
            loyalty = self._lock_loyalty(customer_id, program)

            tiers = program.get_tiers()
            tier_name = loyalty.current_tier_name
            if tier_name is None and tiers:
                tier_name = resolve_tier(loyalty.points, tiers)
            tier = find_tier(tiers, tier_name)

            redeemed = self._collect_rewards(customer_id, tier, tier_name, reward_ids or [], now)

            balance = Decimal(loyalty.redeemable_points or 0)
            if used > balance:
                raise InsufficientPointsError(balance, used)

            total_discount = used + sum((Decimal(str(r.value)) for r in redeemed), Decimal('0'))
            final_amount = max(Decimal('0'), Decimal(bill_amount) - total_discount)

            cashback = sum(
                (Decimal(str(r.cashback_for(bill_amount))) for r in (tier.cashback_rewards if tier else [])),
                Decimal('0')
            ).quantize(CENT, rounding=ROUND_HALF_UP)

            loyalty.redeemable_points = max(Decimal('0'), balance - used + cashback)

            result = self._apply_award(loyalty, program, bill_amount)
            for reward in redeemed:
                db.session.add(RewardRedemption(
                    transaction=result['transaction'],
                    customer_id=customer_id,
                    business_id=self.business_id,
                    reward_id=reward.id,
                    reward_type=reward.reward_type,
                    reward_value=Decimal(str(reward.value)),
                    tier_name=tier_name,
                    redeemed_at=now,
                ))

            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.info(
            f'[Checkout] Business {self.business_id} customer {customer_id}: bill {bill_amount}, '
            f'discount {total_discount}, cashback {cashback}'
        )

        result['notifications'] = self._send_award_notifications(loyalty, program, result)
        summary = self._serialize(result, loyalty)
        summary.update({
            'bill_amount': bill_amount,
            'redeemable_points_used': float(used),
            'redeemed_rewards': [r.to_dict() for r in redeemed],
            'total_discount': float(total_discount),
            'final_amount': float(final_amount),
            'cashback_earned': float(cashback),
        })
        return summary

    # ==================== Helpers ====================

    def _require_program(self):
        from .tier_service import TierService
        program = TierService(self.business_id).get_program()
        if not program:
            raise ProgramNotFoundError()
        return program

    def _lock_loyalty(self, customer_id: int, program) -> CustomerLoyalty:
        """
        Fetch the loyalty row with a row lock, creating it at 0 points if absent.

        The lock serializes concurrent awards for the same customer on
        databases that support SELECT ... FOR UPDATE.
        """
        customer = db.session.get(Customer, customer_id)
        if not customer:
            raise CustomerNotFoundError(customer_id)

        loyalty = CustomerLoyalty.query.filter_by(
            customer_id=customer_id,
            business_id=self.business_id,
        ).with_for_update().first()

        if not loyalty:
            tiers = program.get_tiers()
            loyalty = CustomerLoyalty(
                customer_id=customer_id,
                business_id=self.business_id,
                points=0,
                redeemable_points=Decimal('0'),
                current_tier_name=resolve_tier(0, tiers) if tiers else None,
            )
            db.session.add(loyalty)
            self.notifications.ensure_subscription(customer_id)
            current_app.logger.info(
                f'[Points] Auto-enrolled customer {customer_id} at business {self.business_id}'
            )

        return loyalty

    def _collect_rewards(self, customer_id: int, tier, tier_name: Optional[str],
                         reward_ids: List[int], now: datetime) -> List[Reward]:
        """Rewards must belong to the tier the customer holds before this bill."""
        redeemed = []
        for reward_id in reward_ids:
            reward = tier.get_reward(reward_id) if tier else None
            if not reward or not reward.is_redeemable:
                raise ValidationError(
                    f'Reward {reward_id} is not redeemable at tier {tier_name}', 'reward_ids'
                )
            if reward.usage_limit:
                already = monthly_redemption_count(customer_id, self.business_id, reward.id, now)
                pending = sum(1 for r in redeemed if r.id == reward.id)
                if already + pending >= reward.usage_limit:
                    raise LimitExceededError(
                        f'Monthly redemptions of "{reward.description}"',
                        reward.usage_limit,
                        already + pending
                    )
            redeemed.append(reward)
        return redeemed

    def _apply_award(self, loyalty: CustomerLoyalty, program, bill_amount: int) -> Dict[str, Any]:
        points_awarded = compute_points_awarded(bill_amount, program.points_rate)

        transaction = Transaction(
            customer_id=loyalty.customer_id,
            business_id=self.business_id,
            bill_amount=bill_amount,
            points_awarded=points_awarded,
        )
        db.session.add(transaction)

        previous_tier = loyalty.current_tier_name
        loyalty.points = (loyalty.points or 0) + points_awarded

        tiers = program.get_tiers()
        if tiers:
            loyalty.current_tier_name = resolve_tier(loyalty.points, tiers)

        return {
            'transaction': transaction,
            'points_awarded': points_awarded,
            'previous_tier': previous_tier,
            'current_tier': loyalty.current_tier_name,
            'tier_changed': previous_tier != loyalty.current_tier_name,
        }

    def _send_award_notifications(self, loyalty: CustomerLoyalty, program, result) -> List[str]:
        """Notify the customer; failures never undo the committed award."""
        sent = []
        try:
            pending = []
            if result['points_awarded'] > 0:
                pending.append(self.notifications.create(
                    loyalty.customer_id, 'points_earned',
                    points=result['points_awarded'],
                    total_points=loyalty.points,
                ))
            if result['tier_changed'] and result['current_tier']:
                pending.append(self.notifications.create(
                    loyalty.customer_id, 'tier_upgraded',
                    tier_name=result['current_tier'],
                    previous_tier=result['previous_tier'],
                ))

            progress = tier_progress(loyalty.points, program.get_tiers())
            if should_send_goal_nudge(progress):
                pending.append(self.notifications.create(
                    loyalty.customer_id, 'goal_nudge',
                    percentage=int(progress['percentage']),
                    next_tier=progress['next_tier'],
                    points_needed=progress['points_needed'],
                ))

            db.session.commit()
            self.notifications.send_all(pending)
            sent = [n.type for n in pending]
        except Exception as e:
            db.session.rollback()
            current_app.logger.warning(
                f'[Points] Notifications for customer {loyalty.customer_id} failed: {e}'
            )
        return sent

    @staticmethod
    def _serialize(result: Dict[str, Any], loyalty: CustomerLoyalty) -> Dict[str, Any]:
        return {
            'success': True,
            'transaction': result['transaction'].to_dict(),
            'points_awarded': result['points_awarded'],
            'previous_tier': result['previous_tier'],
            'current_tier': result['current_tier'],
            'tier_changed': result['tier_changed'],
            'loyalty': loyalty.to_dict(),
            'notifications': result.get('notifications', []),
        }
