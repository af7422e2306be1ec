"""
Customer API endpoints.

The customer app: profile, the shops the customer belongs to, the
directory of approved shops and missions across every business.
"""
from flask import Blueprint, request, jsonify, g
from ..middleware.auth import require_customer_auth
from ..services.customer_service import CustomerService, list_approved_shops
from ..services.mission_service import CustomerMissionService
from ..utils.errors import bad_request, ErrorCode

customer_bp = Blueprint('customer', __name__)


# ==================== PROFILE ====================

@customer_bp.route('/profile', methods=['GET'])
@require_customer_auth
def get_profile():
    return jsonify({'customer': g.customer.to_dict()})


@customer_bp.route('/profile', methods=['PUT', 'PATCH'])
@require_customer_auth
def update_profile():
    """
    Request body (all optional):
        name: string
        gender: 'male', 'female' or 'other'
        dob: YYYY-MM-DD
        anniversary: YYYY-MM-DD
    """
    data = request.json or {}
    customer = CustomerService(g.customer_id).update_profile(data)
    return jsonify({'success': True, 'customer': customer.to_dict()})


@customer_bp.route('/dashboard', methods=['GET'])
@require_customer_auth
def get_dashboard():
    """Shops the customer is enrolled at with balance and tier."""
    shops = CustomerService(g.customer_id).get_dashboard()
    return jsonify({
        'customer': g.customer.to_dict(),
        'shops': shops
    })


# ==================== SHOPS ====================

@customer_bp.route('/shops', methods=['GET'])
@require_customer_auth
def list_shops():
    shops = list_approved_shops()
    return jsonify({'shops': shops, 'total': len(shops)})


@customer_bp.route('/shops/<int:business_id>', methods=['GET'])
@require_customer_auth
def get_shop(business_id):
    """
    Shop detail: program, tiers, the customer's loyalty, progress to the
    next tier and recent transactions.
    """
    return jsonify(CustomerService(g.customer_id).get_shop_detail(business_id))


# ==================== MISSIONS ====================

@customer_bp.route('/missions', methods=['GET'])
@require_customer_auth
def list_missions():
    missions = CustomerMissionService(g.customer_id).eligible_missions()
    return jsonify({'missions': [m.to_dict() for m in missions]})


@customer_bp.route('/mission-registry', methods=['GET'])
@require_customer_auth
def list_registries():
    """
    Query params:
        status: in_progress, completed or failed (optional)
    """
    registries = CustomerMissionService(g.customer_id).list_registries(
        status=request.args.get('status')
    )
    return jsonify({'registries': [r.to_dict(include_mission=True) for r in registries]})


@customer_bp.route('/mission-registry', methods=['POST'])
@require_customer_auth
def start_mission():
    """
    Request body:
        mission_id: int (required)
    """
    data = request.json or {}
    mission_id = data.get('mission_id')
    if isinstance(mission_id, bool) or not isinstance(mission_id, int):
        return bad_request('mission_id is required', ErrorCode.MISSING_FIELD)

    registry = CustomerMissionService(g.customer_id).start_mission(mission_id)
    return jsonify({'success': True, 'registry': registry.to_dict(include_mission=True)}), 201


@customer_bp.route('/mission-registry', methods=['DELETE'])
@require_customer_auth
def abandon_mission():
    """
    Abandon an in-progress mission.

    Request body:
        mission_id: int (required)
    """
    data = request.json or {}
    mission_id = data.get('mission_id')
    if isinstance(mission_id, bool) or not isinstance(mission_id, int):
        return bad_request('mission_id is required', ErrorCode.MISSING_FIELD)

    CustomerMissionService(g.customer_id).abandon_mission(mission_id)
    return jsonify({'success': True})
