"""
Utility modules for Retenza.
"""
from .logging_config import setup_logging, get_logger
from .errors import (
    ErrorCode,
    error_response,
    bad_request,
    unauthorized,
    forbidden,
    not_found,
    conflict,
    internal_error
)
from .exceptions import (
    RetenzaError,
    NotFoundError,
    CustomerNotFoundError,
    ProgramNotFoundError,
    TierNotFoundError,
    MissionNotFoundError,
    ValidationError,
    InsufficientBalanceError,
    InsufficientPointsError,
    LimitExceededError,
    InvalidStatusTransitionError,
    DuplicateError,
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    PushDeliveryError
)
