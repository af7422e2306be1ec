"""
Authentication API endpoints.

Customers and businesses sign up and log in with phone number and
password. Every login returns a bearer token; send it as
'Authorization: Bearer <token>' on subsequent requests.
"""
from flask import Blueprint, request, jsonify, g
from ..middleware.auth import get_bearer_token, require_business_auth, require_customer_auth
from ..services.auth_service import AuthService
from ..services.tier_service import TierService
from ..utils.errors import unauthorized, ErrorCode
from ..utils.exceptions import AuthenticationError

auth_bp = Blueprint('auth', __name__)


# ==================== SIGNUP ====================

@auth_bp.route('/signup/customer', methods=['POST'])
def signup_customer():
    """
    Create a customer account.

    Request body:
        phone_number: string (required)
        password: string (required, min 8 characters)
        confirm_password: string (optional)

    Returns:
        Customer data and bearer token
    """
    data = request.json or {}
    customer, token = AuthService.signup_customer(data)

    return jsonify({
        'customer': customer.to_dict(),
        **token,
        'message': 'Account created. Complete your profile to get started.'
    }), 201


@auth_bp.route('/signup/business', methods=['POST'])
def signup_business():
    """
    Create a business account. The business can log in right away but
    operational endpoints stay locked until an admin approves it.

    Request body:
        phone_number: string (required)
        password: string (required, min 8 characters)
        name: string (required)
        email, address, category, ...: profile fields (optional)
    """
    data = request.json or {}
    business, token = AuthService.signup_business(data)

    return jsonify({
        'business': business.to_dict(),
        **token,
        'message': 'Account created. Set up your loyalty program while we review your business.'
    }), 201


@auth_bp.route('/signup/business/loyalty-setup', methods=['POST'])
@require_business_auth
def loyalty_setup():
    """
    Finish business onboarding by creating the loyalty program.

    Request body:
        points_rate: int (required)
        description: string (required, min 10 characters)
        tiers: list of {name, points_to_unlock, rewards: [...]} (required)
    """
    data = request.json or {}
    program = TierService(g.business_id).setup_program(
        data.get('points_rate'),
        data.get('description'),
        data.get('tiers'),
    )

    return jsonify({
        'success': True,
        'program': program.to_dict(),
        'business': g.business.to_dict()
    }), 201


# ==================== LOGIN ====================

@auth_bp.route('/login/business', methods=['POST'])
def login_business():
    data = request.json or {}
    try:
        business, token = AuthService.login('business', data.get('phone_number'), data.get('password'))
    except AuthenticationError as e:
        return unauthorized(e.message, ErrorCode.INVALID_CREDENTIALS)

    return jsonify({
        'business': business.to_dict(),
        **token
    })


@auth_bp.route('/login/customer', methods=['POST'])
def login_customer():
    data = request.json or {}
    try:
        customer, token = AuthService.login('customer', data.get('phone_number'), data.get('password'))
    except AuthenticationError as e:
        return unauthorized(e.message, ErrorCode.INVALID_CREDENTIALS)

    return jsonify({
        'customer': customer.to_dict(),
        **token
    })


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """Revoke the current bearer token."""
    try:
        session = AuthService.verify_token(get_bearer_token())
    except AuthenticationError as e:
        return unauthorized(e.message, ErrorCode.INVALID_TOKEN)

    AuthService.revoke(session.id)
    return jsonify({'success': True, 'message': 'Logged out'})


# ==================== SESSION ====================

@auth_bp.route('/session', methods=['GET'])
def get_session():
    """
    Describe the current session.

    Returns:
        role, expiry and the account (business or customer) behind the token
    """
    try:
        session = AuthService.verify_token(get_bearer_token())
    except AuthenticationError as e:
        return unauthorized(e.message, ErrorCode.INVALID_TOKEN)

    account = AuthService.get_account(session)
    result = session.to_dict()
    if account is not None:
        result[session.role] = account.to_dict()

    return jsonify(result)


@auth_bp.route('/change-password', methods=['POST'])
def change_password():
    """
    Change the password of the logged-in business or customer.

    Every other session of the account is signed out.

    Request body:
        current_password: string (required)
        new_password: string (required)
        confirm_password: string (optional)
    """
    try:
        session = AuthService.verify_token(get_bearer_token())
    except AuthenticationError as e:
        return unauthorized(e.message, ErrorCode.INVALID_TOKEN)

    data = request.json or {}
    try:
        AuthService.change_password(
            session,
            data.get('current_password'),
            data.get('new_password'),
            data.get('confirm_password'),
        )
    except AuthenticationError as e:
        return unauthorized(e.message, ErrorCode.INVALID_CREDENTIALS)

    return jsonify({'success': True, 'message': 'Password updated'})


@auth_bp.route('/me/customer', methods=['GET'])
@require_customer_auth
def me_customer():
    return jsonify({'customer': g.customer.to_dict()})


@auth_bp.route('/me/business', methods=['GET'])
@require_business_auth
def me_business():
    return jsonify({'business': g.business.to_dict()})
