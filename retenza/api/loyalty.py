"""
Loyalty program API endpoints.

A business edits its points rate, description and tier ladder here.
Every change that touches tiers re-resolves all customers' tiers.
"""
from flask import Blueprint, request, jsonify, g
from ..middleware.auth import require_business_auth, require_approved_business
from ..services.tier_service import TierService
from ..utils.errors import bad_request, ErrorCode

loyalty_bp = Blueprint('loyalty', __name__)


@loyalty_bp.route('', methods=['GET'])
@require_business_auth
@require_approved_business
def get_program():
    program = TierService(g.business_id).get_program()
    return jsonify({'program': program.to_dict() if program else None})


@loyalty_bp.route('', methods=['POST'])
@require_business_auth
@require_approved_business
def add_tier():
    """
    Add a tier, creating the program if needed.

    Request body:
        tier: {name, points_to_unlock, rewards: [...]} (required)
        points_rate: int (required when the business has no program yet)
    """
    data = request.json or {}
    tier = data.get('tier')
    if not isinstance(tier, dict):
        return bad_request('tier is required', ErrorCode.MISSING_FIELD)

    program = TierService(g.business_id).add_tier(tier, points_rate=data.get('points_rate'))
    return jsonify({'success': True, 'program': program.to_dict()}), 201


@loyalty_bp.route('', methods=['PUT'])
@require_business_auth
@require_approved_business
def replace_tiers():
    """
    Request body:
        tiers: list of tiers (required, replaces the stored list)
    """
    data = request.json or {}
    program = TierService(g.business_id).replace_tiers(data.get('tiers'))
    return jsonify({'success': True, 'program': program.to_dict()})


@loyalty_bp.route('', methods=['PATCH'])
@require_business_auth
@require_approved_business
def update_settings():
    """
    Request body:
        points_rate: int (optional)
        description: string (optional)
    """
    data = request.json or {}
    program = TierService(g.business_id).update_settings(
        points_rate=data.get('points_rate'),
        description=data.get('description'),
    )
    return jsonify({'success': True, 'program': program.to_dict()})


@loyalty_bp.route('', methods=['DELETE'])
@require_business_auth
@require_approved_business
def delete_tier():
    """
    Delete a tier, or one reward of it when reward_id is given.

    Request body:
        tier_name: string (required)
        reward_id: int (optional)
    """
    data = request.json or {}
    tier_name = data.get('tier_name')
    if not tier_name:
        return bad_request('tier_name is required', ErrorCode.MISSING_FIELD)

    reward_id = data.get('reward_id')
    if reward_id is not None and (isinstance(reward_id, bool) or not isinstance(reward_id, int)):
        return bad_request('reward_id must be an integer', ErrorCode.INVALID_FIELD)

    program = TierService(g.business_id).delete_tier(tier_name, reward_id=reward_id)
    return jsonify({'success': True, 'program': program.to_dict()})


@loyalty_bp.route('/recalculate-tiers', methods=['POST'])
@require_business_auth
@require_approved_business
def recalculate_tiers():
    result = TierService(g.business_id).recalculate_all()
    return jsonify({'success': True, **result})
