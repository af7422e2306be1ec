"""
Business mission and broadcast API endpoints.

Missions:
- GET/POST /missions, PATCH/DELETE /missions/<id>
- GET /missions/tiers (tier names usable in applicable_tiers)

Mission registry (customer attempts):
- GET/POST /mission-registry, PUT/PATCH /mission-registry/<id>

Broadcast notifications:
- POST /notifications/custom
- POST /notifications/tier-rewards
- POST /notifications/trending-missions
"""
from flask import Blueprint, request, jsonify, g
from ..middleware.auth import require_business_auth, require_approved_business
from ..services.mission_service import MissionService
from ..services.notification_service import NotificationService
from ..services.tier_service import TierService
from ..utils.errors import bad_request, ErrorCode

missions_bp = Blueprint('missions', __name__)


def _customer_ids(data):
    ids = data.get('customer_ids')
    if ids is None:
        return None
    if not isinstance(ids, list) or not all(isinstance(i, int) and not isinstance(i, bool) for i in ids):
        return False
    return ids


# ==================== MISSIONS ====================

@missions_bp.route('/missions', methods=['GET'])
@require_business_auth
@require_approved_business
def list_missions():
    missions = MissionService(g.business_id).list_missions()
    return jsonify({'missions': [m.to_dict() for m in missions]})


@missions_bp.route('/missions', methods=['POST'])
@require_business_auth
@require_approved_business
def create_mission():
    """
    Request body:
        title: string (required)
        description: string (required)
        expires_at: ISO 8601 datetime in the future (required)
        offer: string (optional)
        applicable_tiers: 'all' or list of tier names (default 'all')
        filters: {gender, age_range: {min, max}, location, customer_type} (optional)
    """
    data = request.json or {}
    mission = MissionService(g.business_id).create_mission(data)
    return jsonify({'success': True, 'mission': mission.to_dict()}), 201


@missions_bp.route('/missions/<int:mission_id>', methods=['PATCH'])
@require_business_auth
@require_approved_business
def update_mission(mission_id):
    data = request.json or {}
    mission = MissionService(g.business_id).update_mission(mission_id, data)
    return jsonify({'success': True, 'mission': mission.to_dict()})


@missions_bp.route('/missions/<int:mission_id>', methods=['DELETE'])
@require_business_auth
@require_approved_business
def delete_mission(mission_id):
    MissionService(g.business_id).delete_mission(mission_id)
    return jsonify({'success': True})


@missions_bp.route('/missions/tiers', methods=['GET'])
@require_business_auth
@require_approved_business
def mission_tiers():
    return jsonify({'tiers': ['all'] + TierService(g.business_id).tier_names()})


# ==================== MISSION REGISTRY ====================

@missions_bp.route('/mission-registry', methods=['GET'])
@require_business_auth
@require_approved_business
def list_registries():
    """
    Query params:
        status: in_progress, completed or failed (optional)
        customer_id: int (optional)
    """
    registries = MissionService(g.business_id).list_registries(
        status=request.args.get('status'),
        customer_id=request.args.get('customer_id', type=int),
    )
    return jsonify({
        'registries': [r.to_dict(include_mission=True, include_customer=True) for r in registries]
    })


@missions_bp.route('/mission-registry', methods=['POST'])
@require_business_auth
@require_approved_business
def start_registry():
    """
    Start a mission for a customer at the counter.

    Request body:
        mission_id: int (required)
        customer_id: int (required)
        notes: string (optional)
    """
    data = request.json or {}
    mission_id = data.get('mission_id')
    customer_id = data.get('customer_id')
    if not isinstance(mission_id, int) or not isinstance(customer_id, int):
        return bad_request('mission_id and customer_id are required', ErrorCode.MISSING_FIELD)

    registry = MissionService(g.business_id).start_for_customer(
        mission_id, customer_id, notes=data.get('notes')
    )
    return jsonify({'success': True, 'registry': registry.to_dict(include_mission=True)}), 201


@missions_bp.route('/mission-registry/<int:registry_id>', methods=['PUT', 'PATCH'])
@require_business_auth
@require_approved_business
def update_registry(registry_id):
    """
    Mark an attempt completed or failed.

    Request body:
        status: 'completed' or 'failed' (required)
        discount_amount: number (optional)
        discount_percentage: number 0-100 (optional)
        notes: string (optional)
    """
    data = request.json or {}
    registry = MissionService(g.business_id).update_registry(
        registry_id,
        data.get('status'),
        discount_amount=data.get('discount_amount'),
        discount_percentage=data.get('discount_percentage'),
        notes=data.get('notes'),
    )
    return jsonify({'success': True, 'registry': registry.to_dict(include_mission=True)})


# ==================== BROADCASTS ====================

@missions_bp.route('/notifications/custom', methods=['POST'])
@require_business_auth
@require_approved_business
def send_custom_notification():
    """
    Request body:
        title: string (required)
        body: string (required)
        customer_ids: list of int (optional, default all enrolled customers)
    """
    data = request.json or {}
    customer_ids = _customer_ids(data)
    if customer_ids is False:
        return bad_request('customer_ids must be a list of integers', ErrorCode.INVALID_FIELD)

    result = NotificationService(g.business_id).send_custom(
        data.get('title'), data.get('body'), customer_ids=customer_ids
    )
    return jsonify({'success': True, **result})


@missions_bp.route('/notifications/tier-rewards', methods=['POST'])
@require_business_auth
@require_approved_business
def send_tier_rewards_notification():
    """
    Request body:
        tier_name: string (required)
        customer_ids: list of int (optional)
    """
    data = request.json or {}
    if not data.get('tier_name'):
        return bad_request('tier_name is required', ErrorCode.MISSING_FIELD)

    customer_ids = _customer_ids(data)
    if customer_ids is False:
        return bad_request('customer_ids must be a list of integers', ErrorCode.INVALID_FIELD)

    result = NotificationService(g.business_id).send_tier_rewards(
        data['tier_name'], customer_ids=customer_ids
    )
    return jsonify({'success': True, **result})


@missions_bp.route('/notifications/trending-missions', methods=['POST'])
@require_business_auth
@require_approved_business
def send_trending_mission_notification():
    """
    Request body:
        mission_id: int (required)
    """
    data = request.json or {}
    mission_id = data.get('mission_id')
    if isinstance(mission_id, bool) or not isinstance(mission_id, int):
        return bad_request('mission_id is required', ErrorCode.MISSING_FIELD)

    result = NotificationService(g.business_id).send_trending_mission(mission_id)
    return jsonify({'success': True, **result})
