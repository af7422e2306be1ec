"""
Bearer Token Authentication Middleware.

Decorators for API endpoints. Each reads the Authorization header,
verifies the token and its server-side session, and populates flask.g:

- require_business_auth: g.session, g.business_id, g.business
- require_customer_auth: g.session, g.customer_id, g.customer
- require_admin_auth:    g.session
- require_approved_business: must follow require_business_auth
"""
from functools import wraps
from flask import request, g, current_app
from ..extensions import db
from ..models import Business, Customer
from ..services.auth_service import AuthService
from ..utils.errors import ErrorCode, forbidden, unauthorized
from ..utils.exceptions import AuthenticationError


def get_bearer_token() -> str | None:
    """Extract the token from 'Authorization: Bearer <token>'."""
    header = request.headers.get('Authorization', '')
    if header.lower().startswith('bearer '):
        return header[7:].strip() or None
    return None


def _authenticate(role: str):
    """
    Returns:
        (session, None) on success, (None, error_response) otherwise
    """
    try:
        session = AuthService.verify_token(get_bearer_token())
    except AuthenticationError as e:
        return None, unauthorized(e.message, ErrorCode.INVALID_TOKEN)

    if session.role != role:
        return None, forbidden(f'This endpoint requires a {role} account')

    g.session = session
    return session, None


def require_business_auth(f):
    """
    Decorator to require a business session.

    Usage:
        @require_business_auth
        def my_endpoint():
            business_id = g.business_id
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        session, error = _authenticate('business')
        if error:
            return error

        business = db.session.get(Business, session.user_id)
        if not business:
            return unauthorized('Business account no longer exists', ErrorCode.INVALID_TOKEN)

        g.business_id = business.id
        g.business = business
        return f(*args, **kwargs)

    return decorated_function


def require_customer_auth(f):
    """Decorator to require a customer session. Sets g.customer_id and g.customer."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        session, error = _authenticate('customer')
        if error:
            return error

        customer = db.session.get(Customer, session.user_id)
        if not customer:
            return unauthorized('Customer account no longer exists', ErrorCode.INVALID_TOKEN)

        g.customer_id = customer.id
        g.customer = customer
        return f(*args, **kwargs)

    return decorated_function


def require_admin_auth(f):
    """Decorator to require a platform admin session."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        _, error = _authenticate('admin')
        if error:
            return error
        return f(*args, **kwargs)

    return decorated_function


def require_approved_business(f):
    """
    Decorator to block businesses an admin has not approved yet.

    Must be used after @require_business_auth. Disabled when
    REQUIRE_BUSINESS_APPROVAL is False.

    Usage:
        @require_business_auth
        @require_approved_business
        def my_endpoint():
            ...
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        business = getattr(g, 'business', None)
        if not business:
            return unauthorized('Not authenticated')

        if current_app.config.get('REQUIRE_BUSINESS_APPROVAL', True) and not business.approved:
            return forbidden(
                'Your business is pending admin approval',
                ErrorCode.APPROVAL_REQUIRED
            )

        return f(*args, **kwargs)

    return decorated_function
