"""
Custom exceptions for Retenza business logic.

These exceptions provide more specific error handling than generic Exception,
allowing for better error messages and appropriate HTTP status codes
(see utils/errors.py for the status mapping).
"""


class RetenzaError(Exception):
    """Base exception for all Retenza business logic errors."""

    def __init__(self, message: str, code: str = "RETENZA_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(RetenzaError):
    """Resource not found."""

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with ID {identifier} not found"
        super().__init__(message, f"{resource.upper().replace(' ', '_')}_NOT_FOUND")


class CustomerNotFoundError(NotFoundError):
    """Customer not found."""

    def __init__(self, identifier=None):
        super().__init__("Customer", identifier)


class ProgramNotFoundError(NotFoundError):
    """Business has no loyalty program yet."""

    def __init__(self, identifier=None):
        super().__init__("Program", identifier)


class TierNotFoundError(NotFoundError):
    """Tier not found."""

    def __init__(self, identifier=None):
        super().__init__("Tier", identifier)


class MissionNotFoundError(NotFoundError):
    """Mission not found."""

    def __init__(self, identifier=None):
        super().__init__("Mission", identifier)


class ValidationError(RetenzaError):
    """Invalid input data."""

    def __init__(self, message: str, field: str = None):
        self.field = field
        code = f"INVALID_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(message, code)


class InsufficientBalanceError(RetenzaError):
    """Not enough balance for the operation."""

    def __init__(self, current: float, required: float, currency: str = "points"):
        self.current = current
        self.required = required
        message = f"Insufficient {currency}. Current: {current}, Required: {required}"
        super().__init__(message, "INSUFFICIENT_BALANCE")


class InsufficientPointsError(InsufficientBalanceError):
    """Not enough redeemable points for the operation."""

    def __init__(self, current: float, required: float):
        super().__init__(float(current), float(required), "redeemable points")
        self.code = "INSUFFICIENT_POINTS"


class LimitExceededError(RetenzaError):
    """Usage limit exceeded (e.g., monthly reward redemptions)."""

    def __init__(self, resource: str, limit: int, current: int):
        self.limit = limit
        self.current = current
        message = f"{resource} limit exceeded. Limit: {limit}, Current: {current}"
        super().__init__(message, "LIMIT_EXCEEDED")


class InvalidStatusTransitionError(RetenzaError):
    """Invalid status transition for a resource."""

    def __init__(self, resource: str, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        message = f"Cannot change {resource} status from '{from_status}' to '{to_status}'"
        super().__init__(message, "INVALID_STATUS_TRANSITION")


class DuplicateError(RetenzaError):
    """Resource already exists."""

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} already exists"
        if identifier:
            message = f"{resource} with {identifier} already exists"
        super().__init__(message, "DUPLICATE_ENTRY")


class AuthenticationError(RetenzaError):
    """Credentials missing or invalid."""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message, "INVALID_CREDENTIALS")


class AuthorizationError(RetenzaError):
    """User not authorized for this operation."""

    def __init__(self, message: str = "Not authorized for this operation"):
        super().__init__(message, "AUTHORIZATION_ERROR")


class ConfigurationError(RetenzaError):
    """Application configuration error."""

    def __init__(self, message: str):
        super().__init__(message, "CONFIGURATION_ERROR")


class PushDeliveryError(RetenzaError):
    """Web Push service rejected or failed a delivery."""

    def __init__(self, message: str, status_code: int = None):
        self.status_code = status_code
        super().__init__(message, "PUSH_SERVICE_ERROR")
