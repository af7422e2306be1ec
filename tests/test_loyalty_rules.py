"""
Tests for the pure loyalty rules: tier resolution, points, rewards and
mission eligibility.
"""
from datetime import date, datetime

import pytest

from retenza.services.loyalty_rules import (
    CashbackReward,
    DiscountReward,
    FreeItemReward,
    Tier,
    compute_points_awarded,
    is_mission_eligible,
    matches_audience,
    next_tier,
    normalize_applicable_tiers,
    resolve_tier,
    reward_from_dict,
    should_send_goal_nudge,
    tier_progress,
    tiers_from_json,
)
from retenza.utils.exceptions import ValidationError


def ladder():
    return [
        Tier(name='Bronze', points_to_unlock=0),
        Tier(name='Silver', points_to_unlock=100),
        Tier(name='Gold', points_to_unlock=500),
    ]


class TestResolveTier:
    """Tests for resolve_tier."""

    def test_zero_points_gets_entry_tier(self):
        assert resolve_tier(0, ladder()) == 'Bronze'

    def test_threshold_is_inclusive(self):
        assert resolve_tier(100, ladder()) == 'Silver'
        assert resolve_tier(99, ladder()) == 'Bronze'

    def test_highest_qualifying_tier_wins(self):
        assert resolve_tier(10_000, ladder()) == 'Gold'

    def test_input_order_does_not_matter(self):
        assert resolve_tier(150, list(reversed(ladder()))) == 'Silver'

    def test_below_every_threshold_falls_back_to_lowest(self):
        tiers = [Tier(name='Silver', points_to_unlock=100), Tier(name='Gold', points_to_unlock=500)]
        assert resolve_tier(10, tiers) == 'Silver'

    def test_equal_thresholds_later_tier_wins(self):
        tiers = [Tier(name='First', points_to_unlock=50), Tier(name='Second', points_to_unlock=50)]
        assert resolve_tier(60, tiers) == 'Second'

    def test_empty_tiers_raises(self):
        with pytest.raises(ValueError):
            resolve_tier(10, [])

    def test_monotonic_in_points(self):
        tiers = ladder()
        rank = {t.name: i for i, t in enumerate(tiers)}
        edges = {t.points_to_unlock + d for t in tiers for d in (-1, 0, 1)}
        sweep = sorted(set(range(-1, 601)) | edges)

        ranks = [rank[resolve_tier(points, tiers)] for points in sweep]
        assert ranks == sorted(ranks)

    def test_idempotent(self):
        tiers = ladder()
        shuffled = [tiers[2], tiers[0], tiers[1]]
        for points in (-1, 0, 99, 100, 101, 499, 500, 501, 10_000):
            first = resolve_tier(points, tiers)
            assert resolve_tier(points, tiers) == first
            assert resolve_tier(points, shuffled) == first


class TestTierProgress:
    """Tests for next tier and progress calculation."""

    def test_next_tier(self):
        assert next_tier(150, ladder()).name == 'Gold'
        assert next_tier(500, ladder()) is None

    def test_progress(self):
        progress = tier_progress(80, ladder())
        assert progress == {'next_tier': 'Silver', 'points_needed': 20, 'percentage': 80.0}

    def test_progress_none_at_top_tier(self):
        assert tier_progress(900, ladder()) is None

    def test_progress_measured_from_current_tier(self):
        tiers = [
            Tier(name='Bronze', points_to_unlock=0),
            Tier(name='Silver', points_to_unlock=1000),
            Tier(name='Gold', points_to_unlock=1040),
        ]
        just_promoted = tier_progress(1000, tiers)
        assert just_promoted == {'next_tier': 'Gold', 'points_needed': 40, 'percentage': 0.0}
        assert not should_send_goal_nudge(just_promoted)

        assert tier_progress(1036, tiers)['percentage'] == 90.0

    def test_goal_nudge_thresholds(self):
        assert should_send_goal_nudge({'points_needed': 20, 'percentage': 80.0})
        assert not should_send_goal_nudge({'points_needed': 60, 'percentage': 88.0})
        assert not should_send_goal_nudge({'points_needed': 10, 'percentage': 50.0})
        assert not should_send_goal_nudge(None)


class TestPoints:
    """Tests for compute_points_awarded."""

    def test_rate_multiplies_bill(self):
        assert compute_points_awarded(250, 2) == 500

    @pytest.mark.parametrize('bill', [0, -5, 10.5, True, None, '100'])
    def test_invalid_bill_rejected(self, bill):
        with pytest.raises(ValidationError):
            compute_points_awarded(bill, 1)

    def test_invalid_rate_rejected(self):
        with pytest.raises(ValidationError):
            compute_points_awarded(100, 0)


class TestRewards:
    """Tests for reward parsing and variants."""

    def test_variant_selected_by_type(self):
        assert isinstance(reward_from_dict({'reward_type': 'discount', 'description': 'x', 'value': 5}), DiscountReward)
        assert isinstance(reward_from_dict({'reward_type': 'free_item', 'description': 'x'}), FreeItemReward)
        assert isinstance(reward_from_dict({'reward_type': 'cashback', 'description': 'x', 'value': 2}), CashbackReward)

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            reward_from_dict({'reward_type': 'voucher', 'description': 'x'})

    def test_negative_value_rejected(self):
        with pytest.raises(ValidationError):
            reward_from_dict({'reward_type': 'discount', 'description': 'x', 'value': -1})

    def test_cashback_is_not_redeemable(self):
        reward = CashbackReward(description='5%', value=5)
        assert not reward.is_redeemable
        assert reward.cashback_for(200) == 10

    def test_tiers_from_json_parses_rewards(self):
        tiers = tiers_from_json([
            {'name': 'Bronze', 'points_to_unlock': 0,
             'rewards': [{'id': 7, 'reward_type': 'discount', 'description': 'x', 'value': 5}]},
        ])
        assert tiers[0].get_reward(7).value == 5
        assert tiers_from_json(None) == []

    def test_negative_threshold_rejected(self):
        with pytest.raises(ValidationError):
            Tier.from_dict({'name': 'Bad', 'points_to_unlock': -1})


class TestMissionEligibility:
    """Tests for tier targeting and audience filters."""

    def test_wildcard_matches_everyone(self):
        assert is_mission_eligible(['all'], 'Bronze')
        assert is_mission_eligible('all', None)

    def test_named_tiers(self):
        assert is_mission_eligible(['Gold', 'Silver'], 'Silver')
        assert not is_mission_eligible(['Gold'], 'Silver')
        assert not is_mission_eligible(['Gold'], None)

    def test_completed_mission_not_eligible(self):
        assert not is_mission_eligible(['all'], 'Gold', completed=True)

    def test_normalize_applicable_tiers(self):
        assert normalize_applicable_tiers('all') == ['all']
        assert normalize_applicable_tiers([' Gold ', '']) == ['Gold']
        with pytest.raises(ValidationError):
            normalize_applicable_tiers([])

    def test_audience_gender_filter(self):
        now = datetime(2026, 1, 1)
        assert matches_audience({'gender': 'female'}, 'female', None, now)
        assert not matches_audience({'gender': 'female'}, 'male', None, now)
        # Unknown gender is not excluded
        assert matches_audience({'gender': 'female'}, None, None, now)

    def test_audience_age_range(self):
        now = datetime(2026, 1, 1)
        filters = {'age_range': {'min': 18, 'max': 30}}
        assert matches_audience(filters, None, date(2000, 1, 1), now)
        assert not matches_audience(filters, None, date(1980, 1, 1), now)
        assert not matches_audience(filters, None, date(2015, 1, 1), now)
        assert matches_audience(filters, None, None, now)
