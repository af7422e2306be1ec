"""
Platform admin API endpoints.

The admin account is configured through ADMIN_USERNAME / ADMIN_PASSWORD
and manages business approval.
"""
from flask import Blueprint, request, jsonify
from ..middleware.auth import require_admin_auth
from ..services.auth_service import AuthService
from ..services.business_service import BusinessService
from ..utils.errors import bad_request

admin_bp = Blueprint('admin', __name__)


@admin_bp.route('/login', methods=['POST'])
def admin_login():
    """
    Request body:
        username: string (required)
        password: string (required)
    """
    data = request.json or {}
    token = AuthService.admin_login(data.get('username'), data.get('password'))
    return jsonify(token)


# ==================== BUSINESSES ====================

@admin_bp.route('/businesses', methods=['GET'])
@require_admin_auth
def list_businesses():
    """
    List businesses, newest first.

    Query params:
        approved: 'true' or 'false' to filter by approval
    """
    approved = request.args.get('approved')
    if approved is not None:
        if approved.lower() not in ('true', 'false'):
            return bad_request("approved must be 'true' or 'false'")
        approved = approved.lower() == 'true'

    businesses = BusinessService.list_businesses(approved)
    return jsonify({
        'businesses': [b.to_dict() for b in businesses],
        'total': len(businesses)
    })


@admin_bp.route('/businesses/<int:business_id>', methods=['PATCH'])
@require_admin_auth
def set_business_approval(business_id):
    """
    Request body:
        approved: bool (required)
    """
    data = request.json or {}
    business = BusinessService.set_approval(business_id, data.get('approved'))
    return jsonify({'success': True, 'business': business.to_dict()})


@admin_bp.route('/businesses/<int:business_id>', methods=['DELETE'])
@require_admin_auth
def delete_business(business_id):
    """Delete a business with its program, customers' loyalty rows and history."""
    BusinessService.delete_business(business_id)
    return jsonify({'success': True, 'message': f'Business {business_id} deleted'})
