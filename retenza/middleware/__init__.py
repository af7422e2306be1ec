"""
Middleware package for Retenza.
"""
from .auth import (
    get_bearer_token,
    require_business_auth,
    require_customer_auth,
    require_admin_auth,
    require_approved_business,
)
