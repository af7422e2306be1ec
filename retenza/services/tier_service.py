"""
Tier Management Service.

Owns a business's loyalty program: points rate, description and the tier
list. Every change to the tier list is followed by a bulk recalculation so
each CustomerLoyalty.current_tier_name matches the Tier Resolver applied to
the customer's points and the new tiers.

Tier Editing Rules:
1. Tier names are unique within a program (duplicates are rejected)
2. Tier ids are unique within the program; new tiers take the next free integer
3. Reward ids are unique across the whole program
4. Deleting the last reward of a tier deletes the tier
5. An empty tier list leaves customers with no tier
"""
from typing import Optional, Dict, Any, List
from flask import current_app
from ..extensions import db
from ..models import Business, CustomerLoyalty, LoyaltyProgram
from ..utils.exceptions import (
    DuplicateError,
    NotFoundError,
    ProgramNotFoundError,
    TierNotFoundError,
    ValidationError,
)
from .loyalty_rules import (
    Tier,
    find_tier,
    resolve_tier,
    validate_points_rate,
)

MIN_DESCRIPTION_LENGTH = 10


class TierService:
    """
    Service for loyalty program and tier management.

    Usage:
        service = TierService(business_id)
        service.add_tier({'name': 'Gold', 'points_to_unlock': 500, 'rewards': [...]})
    """

    def __init__(self, business_id: int):
        self.business_id = business_id

    # ==================== Program ====================

    def get_program(self) -> Optional[LoyaltyProgram]:
        return LoyaltyProgram.query.filter_by(business_id=self.business_id).first()

    def require_program(self) -> LoyaltyProgram:
        program = self.get_program()
        if not program:
            raise ProgramNotFoundError()
        return program

    def setup_program(self, points_rate: Any, description: Any, tiers: Any) -> LoyaltyProgram:
        """
        Initial program setup during business signup.

        Stricter than later edits: description must be descriptive and every
        tier needs at least one reward. Marks the business setup complete.
        """
        business = db.session.get(Business, self.business_id)
        if not business:
            raise NotFoundError('Business', self.business_id)

        validate_points_rate(points_rate)

        description = (description or '').strip() if isinstance(description, str) else ''
        if len(description) < MIN_DESCRIPTION_LENGTH:
            raise ValidationError(
                f'description must be at least {MIN_DESCRIPTION_LENGTH} characters', 'description'
            )

        if not isinstance(tiers, list) or not tiers:
            raise ValidationError('At least one tier is required', 'tiers')

        parsed = self._parse_tiers(tiers)
        for tier in parsed:
            if not tier.rewards:
                raise ValidationError(f'Tier "{tier.name}" needs at least one reward', 'rewards')

        program = self.get_program()
        if not program:
            program = LoyaltyProgram(business_id=self.business_id)
            db.session.add(program)

        program.points_rate = points_rate
        program.description = description
        program.set_tiers(self._assign_ids(parsed))
        business.is_setup_complete = True

        db.session.flush()
        self._recalculate(program)
        db.session.commit()

        current_app.logger.info(
            f'[Tiers] Business {self.business_id} set up program with {len(parsed)} tiers'
        )
        return program

    def update_settings(self, points_rate: Any = None, description: Any = None) -> LoyaltyProgram:
        program = self.require_program()

        if points_rate is not None:
            program.points_rate = validate_points_rate(points_rate)
        if description is not None:
            program.description = str(description).strip()

        db.session.commit()
        return program

    # ==================== Tier Editing ====================

    def add_tier(self, tier_data: Dict[str, Any], points_rate: Any = None) -> LoyaltyProgram:
        """
        Append a tier, creating the program when the business has none.

        Raises:
            ValidationError: No program yet and no valid points_rate given
            DuplicateError: A tier with the same name already exists
        """
        tier = Tier.from_dict(tier_data)

        program = self.get_program()
        if not program:
            if points_rate is None:
                raise ValidationError('points_rate is required to create a loyalty program', 'points_rate')
            program = LoyaltyProgram(
                business_id=self.business_id,
                points_rate=validate_points_rate(points_rate),
                tiers=[],
            )
            db.session.add(program)

        tiers = program.get_tiers()
        if find_tier(tiers, tier.name):
            raise DuplicateError('Tier', f'name "{tier.name}"')

        tier.id = None
        for reward in tier.rewards:
            reward.id = None
        tiers.append(tier)

        return self._save_tiers(program, tiers)

    def replace_tiers(self, tiers_data: Any) -> LoyaltyProgram:
        """Replace the whole tier list (ids on incoming tiers are kept when unique)."""
        if not isinstance(tiers_data, list):
            raise ValidationError('tiers must be a list', 'tiers')

        program = self.require_program()
        return self._save_tiers(program, self._parse_tiers(tiers_data))

    def delete_tier(self, tier_name: str, reward_id: int = None) -> LoyaltyProgram:
        """
        Delete a tier, or a single reward of it.

        A tier left without rewards after a reward deletion is removed too.
        """
        program = self.require_program()
        tiers = program.get_tiers()

        tier = find_tier(tiers, tier_name)
        if not tier:
            raise TierNotFoundError(tier_name)

        if reward_id is not None:
            reward = tier.get_reward(reward_id)
            if not reward:
                raise NotFoundError('Reward', reward_id)
            tier.rewards = [r for r in tier.rewards if r.id != reward_id]
            if not tier.rewards:
                tiers = [t for t in tiers if t.name != tier_name]
        else:
            tiers = [t for t in tiers if t.name != tier_name]

        return self._save_tiers(program, tiers)

    def tier_names(self) -> List[str]:
        program = self.get_program()
        return [t.name for t in program.get_tiers()] if program else []

    def ensure_default_tier(self) -> LoyaltyProgram:
        """
        Guarantee a program with the default entry tier (Bronze at 0 points).

        Used when a business enrolls customers before configuring tiers.
        Does not commit.
        """
        default_name = current_app.config.get('DEFAULT_TIER_NAME', 'Bronze')
        program = self.get_program()

        if not program:
            program = LoyaltyProgram(
                business_id=self.business_id,
                points_rate=current_app.config.get('DEFAULT_POINTS_RATE', 1),
                tiers=[],
            )
            db.session.add(program)

        tiers = program.get_tiers()
        if not find_tier(tiers, default_name):
            tiers.append(Tier(name=default_name, points_to_unlock=0))
            program.set_tiers(self._assign_ids(tiers))
            db.session.flush()
            self._recalculate(program)

        return program

    # ==================== Recalculation ====================

    def recalculate_all(self) -> Dict[str, int]:
        """
        Re-resolve the tier of every customer of this business.

        Raises:
            ProgramNotFoundError: Business has no program
            ValidationError: Program has no tiers
        """
        program = self.require_program()
        if not program.tiers:
            raise ValidationError('No tiers configured for this business', 'tiers')

        result = self._recalculate(program)
        db.session.commit()
        return result

    def _recalculate(self, program: LoyaltyProgram) -> Dict[str, int]:
        tiers = program.get_tiers()
        loyalties = CustomerLoyalty.query.filter_by(business_id=self.business_id).all()

        updated = 0
        for loyalty in loyalties:
            new_tier = resolve_tier(loyalty.points, tiers) if tiers else None
            if loyalty.current_tier_name != new_tier:
                loyalty.current_tier_name = new_tier
                updated += 1

        current_app.logger.info(
            f'[Tiers] Business {self.business_id}: recalculated {len(loyalties)} customers, {updated} changed'
        )
        return {'total': len(loyalties), 'updated': updated}

    # ==================== Helpers ====================

    def _save_tiers(self, program: LoyaltyProgram, tiers: List[Tier]) -> LoyaltyProgram:
        program.set_tiers(self._assign_ids(tiers))
        db.session.flush()
        self._recalculate(program)
        db.session.commit()
        return program

    @staticmethod
    def _parse_tiers(tiers_data: List[Dict[str, Any]]) -> List[Tier]:
        tiers = [Tier.from_dict(t) for t in tiers_data]
        seen = set()
        for tier in tiers:
            if tier.name in seen:
                raise DuplicateError('Tier', f'name "{tier.name}"')
            seen.add(tier.name)
        return tiers

    @staticmethod
    def _assign_ids(tiers: List[Tier]) -> List[Tier]:
        """Fill missing or clashing tier and reward ids with the next free integer."""
        def valid(value):
            return isinstance(value, int) and not isinstance(value, bool) and value > 0

        tier_ids = set()
        reward_ids = set()
        for tier in tiers:
            if valid(tier.id) and tier.id not in tier_ids:
                tier_ids.add(tier.id)
            else:
                tier.id = None
            for reward in tier.rewards:
                if valid(reward.id) and reward.id not in reward_ids:
                    reward_ids.add(reward.id)
                else:
                    reward.id = None

        next_tier_id = max(tier_ids, default=0) + 1
        next_reward_id = max(reward_ids, default=0) + 1
        for tier in tiers:
            if tier.id is None:
                tier.id = next_tier_id
                next_tier_id += 1
            for reward in tier.rewards:
                if reward.id is None:
                    reward.id = next_reward_id
                    next_reward_id += 1

        return tiers
