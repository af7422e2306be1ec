"""
Business API endpoints.

Profile, dashboard and counter operations: enrolling customers, looking
them up by phone, recording bills and checking out with rewards.
"""
import math

from flask import Blueprint, request, jsonify, g
from ..extensions import db
from ..middleware.auth import require_business_auth, require_approved_business
from ..models import Business
from ..services.business_service import BusinessService
from ..services.enrollment_service import EnrollmentService
from ..services.points_service import PointsService
from ..utils.errors import bad_request, not_found, ErrorCode

business_bp = Blueprint('business', __name__)


def parse_bill_amount(value):
    """Bills arrive as JSON numbers; whole currency units are stored."""
    # Non-numbers and Infinity/NaN pass through for validation to reject
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return value
    return int(round(value))


# ==================== PROFILE ====================

@business_bp.route('/profile', methods=['GET'])
@require_business_auth
def get_profile():
    return jsonify({'business': g.business.to_dict()})


@business_bp.route('/profile', methods=['PATCH'])
@require_business_auth
def update_profile():
    """
    Update profile fields.

    Request body (all optional):
        name, address, business_type, description, email,
        contact_number, contact_number_2, gmap_link, logo_url,
        additional_info: object
    """
    data = request.json or {}
    business = BusinessService(g.business_id).update_profile(data)
    return jsonify({'success': True, 'business': business.to_dict()})


@business_bp.route('/approval-status', methods=['GET'])
@require_business_auth
def own_approval_status():
    return jsonify({
        'business_id': g.business_id,
        'approved': g.business.approved,
        'is_setup_complete': g.business.is_setup_complete
    })


@business_bp.route('/approval-status/<int:business_id>', methods=['GET'])
def approval_status(business_id):
    """Public check used by the onboarding screen while waiting for approval."""
    business = db.session.get(Business, business_id)
    if not business:
        return not_found('Business not found', ErrorCode.BUSINESS_NOT_FOUND)

    return jsonify({'business_id': business.id, 'approved': business.approved})


@business_bp.route('/dashboard', methods=['GET'])
@require_business_auth
@require_approved_business
def get_dashboard():
    """
    Business dashboard.

    Returns:
        business, enrolled customers and stats (customers per tier,
        transactions in the last week and month, active missions)
    """
    return jsonify(BusinessService(g.business_id).get_dashboard())


# ==================== CUSTOMERS ====================

@business_bp.route('/customers', methods=['GET'])
@require_business_auth
@require_approved_business
def list_customers():
    customers = EnrollmentService(g.business_id).list_customers()
    return jsonify({'customers': customers, 'total': len(customers)})


@business_bp.route('/customers', methods=['POST'])
@require_business_auth
@require_approved_business
def add_customer():
    """
    Enroll an existing customer account by phone number.

    Request body:
        phone_number: string (required)

    Returns:
        201 when newly enrolled, 200 when already a member
    """
    data = request.json or {}
    result = EnrollmentService(g.business_id).enroll_by_phone(data.get('phone_number'))
    return jsonify(result), 201 if result['added'] else 200


@business_bp.route('/customers/search', methods=['GET'])
@require_business_auth
@require_approved_business
def search_customer():
    """
    Counter lookup by phone number.

    Query params:
        phone: string (required)

    Returns:
        Customer, loyalty balance, current tier rewards with usage counts
        and progress to the next tier
    """
    phone = request.args.get('phone')
    if not phone:
        return bad_request('phone query parameter is required', ErrorCode.MISSING_FIELD)

    return jsonify(EnrollmentService(g.business_id).lookup_by_phone(phone))


@business_bp.route('/customers/<int:customer_id>', methods=['GET'])
@require_business_auth
@require_approved_business
def get_customer(customer_id):
    return jsonify(EnrollmentService(g.business_id).get_customer_detail(customer_id))


@business_bp.route('/customers/<int:customer_id>/transactions', methods=['POST'])
@require_business_auth
@require_approved_business
def add_transaction(customer_id):
    """
    Record a bill and award points.

    Request body:
        bill_amount: number (required, > 0)
    """
    data = request.json or {}
    result = PointsService(g.business_id).award_points(
        customer_id,
        parse_bill_amount(data.get('bill_amount'))
    )
    return jsonify(result), 201


@business_bp.route('/customers/redeem', methods=['POST'])
@require_business_auth
@require_approved_business
def redeem():
    """
    Checkout with redeemable points and tier rewards.

    Request body:
        customer_id: int (required)
        bill_amount: number (required, > 0)
        redeemable_points_used: number (optional, default 0)
        reward_ids: list of int (optional)

    Returns:
        total_discount, final_amount, cashback_earned and the award result
    """
    data = request.json or {}

    customer_id = data.get('customer_id')
    if isinstance(customer_id, bool) or not isinstance(customer_id, int):
        return bad_request('customer_id is required', ErrorCode.MISSING_FIELD)

    reward_ids = data.get('reward_ids') or []
    if not isinstance(reward_ids, list):
        return bad_request('reward_ids must be a list', ErrorCode.INVALID_FIELD)

    result = PointsService(g.business_id).checkout(
        customer_id,
        parse_bill_amount(data.get('bill_amount')),
        redeemable_points_used=data.get('redeemable_points_used') or 0,
        reward_ids=reward_ids,
    )
    return jsonify(result), 201
