"""
Mission Service for Retenza.

Businesses publish time-bound missions targeted at some of their tiers;
customers see the missions they are eligible for, start them, and the
business marks each attempt completed or failed.

Registry Status Flow:
    in_progress -> completed   (business confirms, discount recorded)
    in_progress -> failed      (business rejects, or mission expired)
    in_progress -> (deleted)   (customer abandons)
"""
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional, Dict, Any, List

from flask import current_app

from ..extensions import db
from ..models import Customer, CustomerLoyalty, Mission, MissionRegistry, MissionStatus
from ..utils.exceptions import (
    CustomerNotFoundError,
    DuplicateError,
    InvalidStatusTransitionError,
    MissionNotFoundError,
    NotFoundError,
    ValidationError,
)
from .loyalty_rules import (
    ALL_TIERS,
    is_mission_eligible,
    matches_audience,
    normalize_applicable_tiers,
)
from .notification_service import NotificationService
from .tier_service import TierService

FINAL_STATUSES = (MissionStatus.COMPLETED.value, MissionStatus.FAILED.value)
GENDER_FILTERS = ('all', 'male', 'female', 'other')


def parse_datetime(value: Any, field: str) -> datetime:
    if isinstance(value, datetime):
        return value
    if not value or not isinstance(value, str):
        raise ValidationError(f'{field} is required', field)
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError(f'{field} must be an ISO 8601 datetime', field)
    if parsed.tzinfo is not None:
        # Stored naive in UTC
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_filters(value: Any) -> Dict[str, Any]:
    """Validate the audience filter object; unknown keys are dropped."""
    if value in (None, ''):
        return {}
    if not isinstance(value, dict):
        raise ValidationError('filters must be an object', 'filters')

    filters = {}
    gender = value.get('gender')
    if gender:
        if gender not in GENDER_FILTERS:
            raise ValidationError(f"gender must be one of: {', '.join(GENDER_FILTERS)}", 'gender')
        filters['gender'] = gender

    age_range = value.get('age_range')
    if age_range:
        if not isinstance(age_range, dict):
            raise ValidationError('age_range must be an object with min/max', 'age_range')
        bounds = {}
        for key in ('min', 'max'):
            bound = age_range.get(key)
            if bound is None:
                continue
            if isinstance(bound, bool) or not isinstance(bound, int) or bound < 0:
                raise ValidationError(f'age_range.{key} must be a non-negative integer', 'age_range')
            bounds[key] = bound
        if 'min' in bounds and 'max' in bounds and bounds['min'] > bounds['max']:
            raise ValidationError('age_range.min cannot exceed age_range.max', 'age_range')
        if bounds:
            filters['age_range'] = bounds

    for key in ('location', 'customer_type'):
        if value.get(key):
            filters[key] = str(value[key]).strip()

    return filters


def parse_decimal(value: Any, field: str) -> Optional[Decimal]:
    if value in (None, ''):
        return None
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be a number', field)
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f'{field} must be a number', field)
    if number < 0:
        raise ValidationError(f'{field} cannot be negative', field)
    return number


class MissionService:
    """
    Business-side mission management.

    Usage:
        service = MissionService(business_id)
        mission = service.create_mission({'title': ..., 'description': ..., 'expires_at': ...})
    """

    def __init__(self, business_id: int):
        self.business_id = business_id
        self.notifications = NotificationService(business_id)

    # ==================== Missions ====================

    def list_missions(self) -> List[Mission]:
        return Mission.query.filter_by(business_id=self.business_id).order_by(
            Mission.created_at.desc(), Mission.id.desc()
        ).all()

    def get_mission(self, mission_id: int) -> Mission:
        mission = Mission.query.filter_by(id=mission_id, business_id=self.business_id).first()
        if not mission:
            raise MissionNotFoundError(mission_id)
        return mission

    def create_mission(self, data: Dict[str, Any], now: datetime = None) -> Mission:
        now = now or datetime.utcnow()

        title = str(data.get('title') or '').strip()
        description = str(data.get('description') or '').strip()
        if not title:
            raise ValidationError('title is required', 'title')
        if not description:
            raise ValidationError('description is required', 'description')

        expires_at = parse_datetime(data.get('expires_at'), 'expires_at')
        if expires_at <= now:
            raise ValidationError('expires_at must be in the future', 'expires_at')

        mission = Mission(
            business_id=self.business_id,
            title=title,
            description=description,
            offer=(data.get('offer') or None),
            applicable_tiers=self._validate_tiers(data.get('applicable_tiers', 'all')),
            filters=parse_filters(data.get('filters')),
            is_active=True,
            expires_at=expires_at,
        )
        db.session.add(mission)
        db.session.commit()

        current_app.logger.info(f'[Missions] Business {self.business_id} created mission {mission.id}')
        return mission

    def update_mission(self, mission_id: int, data: Dict[str, Any]) -> Mission:
        mission = self.get_mission(mission_id)

        if 'title' in data:
            title = str(data.get('title') or '').strip()
            if not title:
                raise ValidationError('title cannot be empty', 'title')
            mission.title = title
        if 'description' in data:
            description = str(data.get('description') or '').strip()
            if not description:
                raise ValidationError('description cannot be empty', 'description')
            mission.description = description
        if 'offer' in data:
            mission.offer = data.get('offer') or None
        if 'applicable_tiers' in data:
            mission.applicable_tiers = self._validate_tiers(data.get('applicable_tiers'))
        if 'filters' in data:
            mission.filters = parse_filters(data.get('filters'))
        if 'expires_at' in data:
            mission.expires_at = parse_datetime(data.get('expires_at'), 'expires_at')
        if 'is_active' in data:
            if not isinstance(data['is_active'], bool):
                raise ValidationError('is_active must be a boolean', 'is_active')
            mission.is_active = data['is_active']

        db.session.commit()
        return mission

    def delete_mission(self, mission_id: int) -> None:
        mission = self.get_mission(mission_id)
        MissionRegistry.query.filter_by(mission_id=mission.id).delete()
        db.session.delete(mission)
        db.session.commit()
        current_app.logger.info(f'[Missions] Business {self.business_id} deleted mission {mission_id}')

    # ==================== Registries ====================

    def list_registries(self, status: str = None, customer_id: int = None) -> List[MissionRegistry]:
        query = MissionRegistry.query.filter_by(business_id=self.business_id)
        if status:
            if status not in [s.value for s in MissionStatus]:
                raise ValidationError(f'Unknown status: {status}', 'status')
            query = query.filter_by(status=status)
        if customer_id:
            query = query.filter_by(customer_id=customer_id)
        return query.order_by(MissionRegistry.started_at.desc(), MissionRegistry.id.desc()).all()

    def start_for_customer(
        self,
        mission_id: int,
        customer_id: int,
        notes: str = None,
        now: datetime = None
    ) -> MissionRegistry:
        """
        Start a mission on behalf of a customer at the counter.

        Raises:
            MissionNotFoundError: Mission missing, inactive or expired
            ValidationError: Mission targets tiers the customer does not hold
            DuplicateError: Customer already has this mission in progress
        """
        now = now or datetime.utcnow()
        mission = self.get_mission(mission_id)
        if not mission.is_active or mission.is_expired(now):
            raise MissionNotFoundError(mission_id)
        if not db.session.get(Customer, customer_id):
            raise CustomerNotFoundError(customer_id)

        loyalty = CustomerLoyalty.query.filter_by(
            customer_id=customer_id,
            business_id=self.business_id,
        ).first()
        tier_name = loyalty.current_tier_name if loyalty else None
        if not is_mission_eligible(mission.applicable_tiers, tier_name):
            raise ValidationError('Customer is not eligible for this mission', 'mission_id')

        in_progress = MissionRegistry.query.filter_by(
            mission_id=mission.id,
            customer_id=customer_id,
            status=MissionStatus.IN_PROGRESS.value,
        ).first()
        if in_progress:
            raise DuplicateError('Mission registry', f'mission {mission.id} in progress')

        registry = MissionRegistry(
            customer_id=customer_id,
            business_id=self.business_id,
            mission_id=mission.id,
            status=MissionStatus.IN_PROGRESS.value,
            notes=notes,
        )
        db.session.add(registry)
        db.session.commit()
        return registry

    def update_registry(
        self,
        registry_id: int,
        status: str,
        discount_amount: Any = None,
        discount_percentage: Any = None,
        notes: str = None
    ) -> MissionRegistry:
        """
        Close an in-progress registry as completed or failed.

        Completion notifies the customer.
        """
        registry = MissionRegistry.query.filter_by(id=registry_id, business_id=self.business_id).first()
        if not registry:
            raise NotFoundError('Mission registry', registry_id)

        if status not in FINAL_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(FINAL_STATUSES)}", 'status')
        if registry.status != MissionStatus.IN_PROGRESS.value:
            raise InvalidStatusTransitionError('mission registry', registry.status, status)

        percentage = parse_decimal(discount_percentage, 'discount_percentage')
        if percentage is not None and percentage > 100:
            raise ValidationError('discount_percentage cannot exceed 100', 'discount_percentage')

        registry.status = status
        registry.discount_amount = parse_decimal(discount_amount, 'discount_amount')
        registry.discount_percentage = percentage
        if notes is not None:
            registry.notes = notes
        registry.completed_at = datetime.utcnow()
        db.session.commit()

        if status == MissionStatus.COMPLETED.value:
            try:
                self.notifications.notify(
                    registry.customer_id, 'mission_completed',
                    mission_id=registry.mission_id,
                    mission_title=registry.mission.title,
                )
            except Exception as e:
                db.session.rollback()
                current_app.logger.warning(f'[Missions] Completion notification failed: {e}')

        return registry

    # ==================== Helpers ====================

    def _validate_tiers(self, value: Any) -> List[str]:
        """Named tiers must exist in the business's program."""
        tiers = normalize_applicable_tiers(value)
        if ALL_TIERS in tiers:
            return [ALL_TIERS]

        known = set(TierService(self.business_id).tier_names())
        unknown = [t for t in tiers if t not in known]
        if unknown:
            raise ValidationError(f"Unknown tiers: {', '.join(unknown)}", 'applicable_tiers')
        return tiers


class CustomerMissionService:
    """
    Customer-side view of missions across every business.

    Usage:
        service = CustomerMissionService(customer_id)
        missions = service.eligible_missions()
    """

    def __init__(self, customer_id: int):
        self.customer_id = customer_id

    def _customer(self) -> Customer:
        customer = db.session.get(Customer, self.customer_id)
        if not customer:
            raise CustomerNotFoundError(self.customer_id)
        return customer

    def _tier_by_business(self) -> Dict[int, Optional[str]]:
        loyalties = CustomerLoyalty.query.filter_by(customer_id=self.customer_id).all()
        return {l.business_id: l.current_tier_name for l in loyalties}

    def _completed_mission_ids(self) -> set:
        rows = db.session.query(MissionRegistry.mission_id).filter_by(
            customer_id=self.customer_id,
            status=MissionStatus.COMPLETED.value,
        ).all()
        return {row[0] for row in rows}

    def _is_eligible(self, mission: Mission, customer: Customer, tiers: Dict[int, Optional[str]],
                     completed: set, now: datetime) -> bool:
        if not mission.is_active or mission.is_expired(now):
            return False
        if not is_mission_eligible(mission.applicable_tiers, tiers.get(mission.business_id),
                                   completed=mission.id in completed):
            return False
        return matches_audience(mission.filters, customer.gender, customer.dob, now)

    def eligible_missions(self, now: datetime = None) -> List[Mission]:
        """
        Active, unexpired missions the customer qualifies for.

        Wildcard missions are visible from every business, so customers can
        discover shops they have not joined yet.
        """
        now = now or datetime.utcnow()
        customer = self._customer()
        tiers = self._tier_by_business()
        completed = self._completed_mission_ids()

        missions = Mission.query.filter(
            Mission.is_active.is_(True),
            Mission.expires_at > now,
        ).order_by(Mission.expires_at.asc()).all()

        return [m for m in missions if self._is_eligible(m, customer, tiers, completed, now)]

    def list_registries(self, status: str = None) -> List[MissionRegistry]:
        query = MissionRegistry.query.filter_by(customer_id=self.customer_id)
        if status:
            query = query.filter_by(status=status)
        return query.order_by(MissionRegistry.started_at.desc(), MissionRegistry.id.desc()).all()

    def start_mission(self, mission_id: int, now: datetime = None) -> MissionRegistry:
        """
        Raises:
            MissionNotFoundError: Mission missing, inactive or expired
            ValidationError: Already started, or customer not eligible
        """
        now = now or datetime.utcnow()
        customer = self._customer()

        mission = db.session.get(Mission, mission_id)
        if not mission or not mission.is_active or mission.is_expired(now):
            raise MissionNotFoundError(mission_id)

        existing = MissionRegistry.query.filter_by(
            customer_id=self.customer_id,
            mission_id=mission.id,
        ).first()
        if existing:
            raise ValidationError(f'Mission already {existing.status.replace("_", " ")}', 'mission_id')

        if not self._is_eligible(mission, customer, self._tier_by_business(), set(), now):
            raise ValidationError('You are not eligible for this mission', 'mission_id')

        registry = MissionRegistry(
            customer_id=self.customer_id,
            business_id=mission.business_id,
            mission_id=mission.id,
            status=MissionStatus.IN_PROGRESS.value,
            started_at=now,
        )
        db.session.add(registry)
        db.session.commit()

        try:
            NotificationService(mission.business_id).notify(
                self.customer_id, 'mission_started',
                mission_id=mission.id,
                mission_title=mission.title,
            )
        except Exception as e:
            db.session.rollback()
            current_app.logger.warning(f'[Missions] Start notification failed: {e}')

        return registry

    def abandon_mission(self, mission_id: int) -> None:
        registry = MissionRegistry.query.filter_by(
            customer_id=self.customer_id,
            mission_id=mission_id,
            status=MissionStatus.IN_PROGRESS.value,
        ).first()
        if not registry:
            raise NotFoundError('Mission registry', mission_id)

        db.session.delete(registry)
        db.session.commit()
