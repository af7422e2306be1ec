"""
Authentication Service for Retenza.

Accounts are identified by phone number and password (Werkzeug hashes).
Every successful login issues a signed bearer token (PyJWT, HS256) whose
jti is the primary key of a Session row; logout deletes the row, which
revokes the token before it expires.

Token payload:
- sub: user id (string)
- role: 'business', 'customer' or 'admin'
- jti: session id
- iat / exp: issue and expiry time
"""
import hmac
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, Tuple

import jwt
from flask import current_app

from ..extensions import db
from ..models import Business, Customer, Session
from ..utils.exceptions import (
    AuthenticationError,
    DuplicateError,
    NotFoundError,
    ValidationError,
)
from .enrollment_service import normalize_phone

MIN_PASSWORD_LENGTH = 8
ROLES = ('business', 'customer', 'admin')
ACCOUNT_MODELS = {'business': Business, 'customer': Customer}
JWT_ALGORITHM = 'HS256'


def _signing_key() -> str:
    return current_app.config.get('JWT_SECRET_KEY') or current_app.config['SECRET_KEY']


def validate_password(password: Any, confirm_password: Any = None) -> str:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f'Password must be at least {MIN_PASSWORD_LENGTH} characters', 'password'
        )
    if confirm_password is not None and password != confirm_password:
        raise ValidationError('Passwords do not match', 'confirm_password')
    return password


class AuthService:
    """
    Signup, login and bearer-token sessions.

    Usage:
        customer, session = AuthService.signup_customer(data)
        payload = AuthService.verify_token(token, role='customer')
    """

    # ==================== Tokens ====================

    @staticmethod
    def issue_token(user_id: int, role: str) -> Dict[str, Any]:
        """Create a Session row and the signed token that refers to it."""
        if role not in ROLES:
            raise ValidationError(f'Unknown role: {role}', 'role')

        now = datetime.utcnow()
        expires_at = now + timedelta(hours=current_app.config.get('SESSION_TTL_HOURS', 24))
        session = Session(
            id=uuid.uuid4().hex,
            user_id=user_id,
            role=role,
            expires_at=expires_at,
        )
        db.session.add(session)
        db.session.commit()

        token = jwt.encode(
            {
                'sub': str(user_id),
                'role': role,
                'jti': session.id,
                'iat': now,
                'exp': expires_at,
            },
            _signing_key(),
            algorithm=JWT_ALGORITHM,
        )
        return {
            'token': token,
            'token_type': 'Bearer',
            'role': role,
            'expires_at': expires_at.isoformat(),
        }

    @staticmethod
    def verify_token(token: str) -> Session:
        """
        Decode a bearer token and return its live Session.

        Raises:
            AuthenticationError: Token invalid, expired or revoked
        """
        if not token:
            raise AuthenticationError('Authentication required')

        try:
            payload = jwt.decode(token, _signing_key(), algorithms=[JWT_ALGORITHM])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError('Session expired')
        except jwt.InvalidTokenError as e:
            current_app.logger.info(f'[Auth] Invalid token: {e}')
            raise AuthenticationError('Invalid token')

        session = db.session.get(Session, payload.get('jti'))
        if not session or session.is_expired():
            raise AuthenticationError('Session expired or revoked')
        if session.role != payload.get('role') or str(session.user_id) != payload.get('sub'):
            raise AuthenticationError('Invalid token')

        return session

    @staticmethod
    def revoke(session_id: str) -> bool:
        deleted = Session.query.filter_by(id=session_id).delete()
        db.session.commit()
        return deleted > 0

    @staticmethod
    def purge_expired_sessions(now: datetime = None) -> int:
        now = now or datetime.utcnow()
        deleted = Session.query.filter(Session.expires_at <= now).delete()
        db.session.commit()
        return deleted

    # ==================== Signup ====================

    @staticmethod
    def signup_customer(data: Dict[str, Any]) -> Tuple[Customer, Dict[str, Any]]:
        phone = normalize_phone(data.get('phone_number'))
        password = validate_password(data.get('password'), data.get('confirm_password'))

        if Customer.query.filter_by(phone_number=phone).first():
            raise DuplicateError('Customer', f'phone number {phone}')

        customer = Customer(phone_number=phone)
        customer.set_password(password)
        db.session.add(customer)
        db.session.commit()

        current_app.logger.info(f'[Auth] Customer {customer.id} signed up')
        return customer, AuthService.issue_token(customer.id, 'customer')

    @staticmethod
    def signup_business(data: Dict[str, Any]) -> Tuple[Business, Dict[str, Any]]:
        phone = normalize_phone(data.get('phone_number'))
        password = validate_password(data.get('password'), data.get('confirm_password'))

        name = str(data.get('name') or '').strip()
        if not name:
            raise ValidationError('Business name is required', 'name')

        if Business.query.filter_by(phone_number=phone).first():
            raise DuplicateError('Business', f'phone number {phone}')

        business = Business(phone_number=phone, name=name, approved=False)
        for field in Business.PROFILE_FIELDS:
            if field != 'name' and data.get(field) is not None:
                setattr(business, field, data[field])
        business.set_password(password)
        db.session.add(business)
        db.session.commit()

        current_app.logger.info(f'[Auth] Business {business.id} signed up, awaiting approval')
        return business, AuthService.issue_token(business.id, 'business')

    # ==================== Login ====================

    @staticmethod
    def login(role: str, phone_number: Any, password: Any) -> Tuple[Any, Dict[str, Any]]:
        model = ACCOUNT_MODELS.get(role)
        if not model:
            raise ValidationError(f'Unknown role: {role}', 'role')

        phone = normalize_phone(phone_number)
        account = model.query.filter_by(phone_number=phone).first()
        if not account or not isinstance(password, str) or not account.check_password(password):
            raise AuthenticationError('Invalid phone number or password')

        return account, AuthService.issue_token(account.id, role)

    @staticmethod
    def admin_login(username: Any, password: Any) -> Dict[str, Any]:
        expected_user = current_app.config.get('ADMIN_USERNAME') or ''
        expected_password = current_app.config.get('ADMIN_PASSWORD') or ''

        valid = (
            isinstance(username, str) and isinstance(password, str)
            and hmac.compare_digest(username, expected_user)
            and hmac.compare_digest(password, expected_password)
        )
        if not valid:
            current_app.logger.warning('[Auth] Failed admin login')
            raise AuthenticationError('Invalid admin credentials')

        return AuthService.issue_token(0, 'admin')

    @staticmethod
    def get_account(session: Session):
        """The Business or Customer behind a session (None for admin)."""
        model = ACCOUNT_MODELS.get(session.role)
        if not model:
            return None
        account = db.session.get(model, session.user_id)
        if not account:
            raise NotFoundError(session.role.title(), session.user_id)
        return account

    @staticmethod
    def change_password(session: Session, current_password: Any, new_password: Any,
                        confirm_password: Any = None) -> None:
        account = AuthService.get_account(session)
        if account is None:
            raise ValidationError('Admin password is managed by configuration', 'role')

        if not isinstance(current_password, str) or not account.check_password(current_password):
            raise AuthenticationError('Current password is incorrect')

        account.set_password(validate_password(new_password, confirm_password))

        # Sign out every other session of this account
        Session.query.filter(
            Session.user_id == session.user_id,
            Session.role == session.role,
            Session.id != session.id,
        ).delete()
        db.session.commit()
