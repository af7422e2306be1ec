"""
Loyalty rules for Retenza.

Pure functions and value types shared by every service that touches points,
tiers or missions. Nothing here reads the database, so the same rules back
the HTTP API, the CLI and the scheduled jobs.

Rules:
- Tier Resolver: the highest tier whose points_to_unlock the customer's
  points meet or exceed; the lowest tier when none qualifies.
- Points Awarder: floor(bill_amount * points_rate).
- Mission Eligibility: the "all" wildcard or tier membership, minus
  missions the customer already completed.

Tiers are stored on the loyalty program as a JSON list:

    [
        {"id": 1, "name": "Bronze", "points_to_unlock": 0,
         "rewards": [{"id": 1, "reward_type": "discount", "description": "5% off", "value": 5}]},
        {"id": 2, "name": "Silver", "points_to_unlock": 100, "rewards": [...]}
    ]
"""
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, ClassVar, Dict, Iterable, List, Optional

from ..utils.exceptions import ValidationError


# Wildcard accepted in Mission.applicable_tiers
ALL_TIERS = 'all'

# Goal-gradient nudge: within this many points and at least this far along
GOAL_NUDGE_MAX_POINTS = 50
GOAL_NUDGE_MIN_PERCENT = 80


# ==================== Rewards ====================

@dataclass
class Reward:
    """
    A reward attached to a tier.

    Concrete rewards are the subclasses below, discriminated by reward_type.
    usage_limit caps redemptions per calendar month (None = unlimited).
    """
    reward_type: ClassVar[str] = ''

    id: Optional[int] = None
    description: str = ''
    value: float = 0
    usage_limit: Optional[int] = None

    @property
    def is_redeemable(self) -> bool:
        """Cashback accrues automatically; other rewards are redeemed at checkout."""
        return True

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'reward_type': self.reward_type,
            'description': self.description,
            'value': self.value,
        }
        if self.usage_limit is not None:
            data['usage_limit'] = self.usage_limit
        return data


@dataclass
class FreeItemReward(Reward):
    """A free product; value is the item's worth in currency units."""
    reward_type: ClassVar[str] = 'free_item'


@dataclass
class DiscountReward(Reward):
    """A flat discount in currency units."""
    reward_type: ClassVar[str] = 'discount'


@dataclass
class CashbackReward(Reward):
    """value percent of each bill credited to the redeemable balance."""
    reward_type: ClassVar[str] = 'cashback'

    @property
    def is_redeemable(self) -> bool:
        return False

    def cashback_for(self, bill_amount: float) -> float:
        return bill_amount * float(self.value) / 100


REWARD_CLASSES = {
    cls.reward_type: cls
    for cls in (FreeItemReward, DiscountReward, CashbackReward)
}
REWARD_TYPES = tuple(REWARD_CLASSES)


def reward_from_dict(data: Dict[str, Any]) -> Reward:
    """Build the Reward variant named by data['reward_type']."""
    if not isinstance(data, dict):
        raise ValidationError('Reward must be an object', 'reward')

    reward_type = data.get('reward_type')
    reward_class = REWARD_CLASSES.get(reward_type)
    if not reward_class:
        raise ValidationError(
            f"reward_type must be one of: {', '.join(REWARD_TYPES)}", 'reward_type'
        )

    description = str(data.get('description') or '').strip()
    if not description:
        raise ValidationError('Reward description is required', 'description')

    value = data.get('value', 0)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ValidationError('Reward value must be a non-negative number', 'value')

    usage_limit = data.get('usage_limit')
    if usage_limit is not None:
        if isinstance(usage_limit, bool) or not isinstance(usage_limit, int) or usage_limit < 1:
            raise ValidationError('usage_limit must be a positive integer', 'usage_limit')

    return reward_class(
        id=data.get('id'),
        description=description,
        value=value,
        usage_limit=usage_limit,
    )


# ==================== Tiers ====================

@dataclass
class Tier:
    """A named loyalty level unlocked at a points threshold."""
    name: str
    points_to_unlock: int
    id: Optional[int] = None
    rewards: List[Reward] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Tier':
        if not isinstance(data, dict):
            raise ValidationError('Tier must be an object', 'tier')

        name = str(data.get('name') or '').strip()
        if not name:
            raise ValidationError('Tier name is required', 'name')

        threshold = data.get('points_to_unlock')
        if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 0:
            raise ValidationError(
                'points_to_unlock must be a non-negative integer', 'points_to_unlock'
            )

        rewards = data.get('rewards') or []
        if not isinstance(rewards, list):
            raise ValidationError('rewards must be a list', 'rewards')

        return cls(
            id=data.get('id'),
            name=name,
            points_to_unlock=threshold,
            rewards=[reward_from_dict(r) for r in rewards],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'points_to_unlock': self.points_to_unlock,
            'rewards': [r.to_dict() for r in self.rewards],
        }

    def get_reward(self, reward_id: int) -> Optional[Reward]:
        for reward in self.rewards:
            if reward.id == reward_id:
                return reward
        return None

    @property
    def cashback_rewards(self) -> List[CashbackReward]:
        return [r for r in self.rewards if isinstance(r, CashbackReward)]


def tiers_from_json(raw: Optional[Iterable[Dict[str, Any]]]) -> List[Tier]:
    """Parse a stored tier list; None or empty yields []."""
    return [Tier.from_dict(t) for t in (raw or [])]


def tiers_to_json(tiers: Iterable[Tier]) -> List[Dict[str, Any]]:
    return [t.to_dict() for t in tiers]


def sort_tiers(tiers: Iterable[Tier]) -> List[Tier]:
    """Ascending by points_to_unlock. sorted() is stable, so equal thresholds keep list order."""
    return sorted(tiers, key=lambda t: t.points_to_unlock)


def find_tier(tiers: Iterable[Tier], name: Optional[str]) -> Optional[Tier]:
    if name is None:
        return None
    for tier in tiers:
        if tier.name == name:
            return tier
    return None


def resolve_tier(points: int, tiers: Iterable[Tier]) -> str:
    """
    Return the name of the tier a points balance qualifies for.

    Scans from the highest threshold downward and returns the first tier
    whose points_to_unlock <= points. When nothing qualifies the lowest tier
    is returned. Among equal thresholds the tier listed later wins.

    Raises:
        ValueError: If tiers is empty
    """
    ordered = sort_tiers(tiers)
    if not ordered:
        raise ValueError('resolve_tier requires at least one tier')

    for tier in reversed(ordered):
        if points >= tier.points_to_unlock:
            return tier.name
    return ordered[0].name


def next_tier(points: int, tiers: Iterable[Tier]) -> Optional[Tier]:
    """The lowest tier whose threshold is still above points, if any."""
    for tier in sort_tiers(tiers):
        if tier.points_to_unlock > points:
            return tier
    return None


def tier_progress(points: int, tiers: Iterable[Tier]) -> Optional[Dict[str, Any]]:
    """
    Progress toward the next tier.

    Returns None when the customer already holds the top tier.
    """
    tiers = list(tiers)
    upcoming = next_tier(points, tiers)
    if upcoming is None:
        return None

    # Measured across the gap between the tier held and the next one
    floor = max((t.points_to_unlock for t in tiers if t.points_to_unlock <= points), default=0)
    gap = upcoming.points_to_unlock - floor
    points_needed = upcoming.points_to_unlock - points
    percentage = (points - floor) / gap * 100 if gap > 0 else 100
    return {
        'next_tier': upcoming.name,
        'points_needed': points_needed,
        'percentage': round(percentage, 2),
    }


def should_send_goal_nudge(progress: Optional[Dict[str, Any]]) -> bool:
    if not progress:
        return False
    return (
        progress['points_needed'] <= GOAL_NUDGE_MAX_POINTS
        and progress['percentage'] >= GOAL_NUDGE_MIN_PERCENT
    )


# ==================== Points ====================

def validate_points_rate(points_rate: Any) -> int:
    if isinstance(points_rate, bool) or not isinstance(points_rate, int) or points_rate <= 0:
        raise ValidationError('points_rate must be a positive integer', 'points_rate')
    return points_rate


def validate_bill_amount(bill_amount: Any) -> int:
    if isinstance(bill_amount, bool) or not isinstance(bill_amount, int) or bill_amount <= 0:
        raise ValidationError('bill_amount must be a positive integer', 'bill_amount')
    return bill_amount


def compute_points_awarded(bill_amount: int, points_rate: int) -> int:
    """floor(bill_amount * points_rate) for a positive bill and rate."""
    validate_bill_amount(bill_amount)
    validate_points_rate(points_rate)
    return math.floor(bill_amount * points_rate)


# ==================== Missions ====================

def normalize_applicable_tiers(value: Any) -> List[str]:
    """Accept the bare "all" sentinel or a list of tier names."""
    if value == ALL_TIERS:
        return [ALL_TIERS]
    if not isinstance(value, list) or not value:
        raise ValidationError(
            'applicable_tiers must be "all" or a non-empty list of tier names',
            'applicable_tiers'
        )
    names = [str(v).strip() for v in value if str(v).strip()]
    if not names:
        raise ValidationError('applicable_tiers must not be empty', 'applicable_tiers')
    return names


def is_mission_eligible(
    applicable_tiers: Any,
    tier_name: Optional[str],
    completed: bool = False,
) -> bool:
    """
    A mission is eligible when it targets all tiers or the customer's tier,
    and the customer has not already completed it.

    tier_name is None for customers with no loyalty record at the business;
    only wildcard missions apply to them.
    """
    if completed:
        return False
    if applicable_tiers == ALL_TIERS:
        return True
    tiers = applicable_tiers or []
    if ALL_TIERS in tiers:
        return True
    return tier_name is not None and tier_name in tiers


def age_on(dob: Optional[date], today: date) -> Optional[int]:
    if not dob:
        return None
    years = today.year - dob.year
    if (today.month, today.day) < (dob.month, dob.day):
        years -= 1
    return years


def matches_audience(filters: Optional[Dict[str, Any]], gender: Optional[str],
                     dob: Optional[date], now: datetime) -> bool:
    """
    Demographic targeting on top of tier eligibility.

    Only gender and age_range are evaluated, and only when the customer has
    the attribute; location and customer_type are informational.
    """
    if not filters:
        return True

    wanted_gender = filters.get('gender')
    if wanted_gender and wanted_gender != 'all' and gender:
        if wanted_gender.lower() != gender.lower():
            return False

    age_range = filters.get('age_range') or {}
    age = age_on(dob, now.date())
    if age is not None:
        minimum = age_range.get('min')
        maximum = age_range.get('max')
        if minimum is not None and age < minimum:
            return False
        if maximum is not None and age > maximum:
            return False

    return True
