"""
Configuration management for Retenza platform.
"""
import os
from dotenv import load_dotenv

load_dotenv()


class BaseConfig:
    """Base configuration."""
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bearer tokens (signed with JWT_SECRET_KEY, falls back to SECRET_KEY)
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY')
    SESSION_TTL_HOURS = int(os.getenv('SESSION_TTL_HOURS', '24'))

    # Platform admin credentials
    ADMIN_USERNAME = os.getenv('ADMIN_USERNAME', 'admin')
    ADMIN_PASSWORD = os.getenv('ADMIN_PASSWORD', 'admin')

    # Web Push (VAPID)
    VAPID_PUBLIC_KEY = os.getenv('VAPID_PUBLIC_KEY', '')
    VAPID_PRIVATE_KEY = os.getenv('VAPID_PRIVATE_KEY', '')
    VAPID_CLAIMS_EMAIL = os.getenv('VAPID_CLAIMS_EMAIL', 'mailto:support@retenza.app')

    # Shared secret for the external cron trigger
    CRON_SECRET = os.getenv('CRON_SECRET', '')

    # Businesses must be approved by an admin before operating
    REQUIRE_BUSINESS_APPROVAL = os.getenv('REQUIRE_BUSINESS_APPROVAL', 'true') == 'true'

    # Retenza defaults
    DEFAULT_POINTS_RATE = 1
    DEFAULT_TIER_NAME = 'Bronze'
    INACTIVITY_DAYS = int(os.getenv('INACTIVITY_DAYS', '30'))

    CORS_ORIGINS = [
        origin.strip()
        for origin in os.getenv('CORS_ORIGINS', 'http://localhost:3000').split(',')
        if origin.strip()
    ]


class DevelopmentConfig(BaseConfig):
    """Development configuration."""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URL',
        'sqlite:///retenza_dev.db'  # SQLite fallback for local dev
    )


class ProductionConfig(BaseConfig):
    """Production configuration."""
    DEBUG = False

    _db_url = os.getenv('DATABASE_URL', '')
    if _db_url.startswith('postgres://'):
        # SQLAlchemy requires postgresql:// not postgres://
        _db_url = _db_url.replace('postgres://', 'postgresql://', 1)

    SQLALCHEMY_DATABASE_URI = _db_url

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 5,
        'pool_recycle': 300,
        'pool_pre_ping': True,  # Verify connections before using
    }

    # Override SECRET_KEY for production - must be set via environment
    _secret_key = os.getenv('SECRET_KEY', '')

    @classmethod
    def validate_secret_key(cls) -> str:
        """
        Validate SECRET_KEY in production environment.

        Raises:
            RuntimeError: If SECRET_KEY is missing, empty, or contains unsafe values
        """
        if not cls._secret_key:
            raise RuntimeError(
                "CRITICAL: SECRET_KEY environment variable is not set!\n"
                "Production deployments MUST have a secure SECRET_KEY.\n"
                "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
            )

        insecure_patterns = ['dev', 'change', 'default', 'test', 'secret', 'password']
        lower_key = cls._secret_key.lower()
        for pattern in insecure_patterns:
            if pattern in lower_key:
                raise RuntimeError(
                    f"CRITICAL: SECRET_KEY contains '{pattern}' which suggests it's not secure!\n"
                    "Production deployments require a unique, random SECRET_KEY."
                )

        if len(cls._secret_key) < 32:
            raise RuntimeError(
                "CRITICAL: SECRET_KEY is too short (minimum 32 characters required)!"
            )

        return cls._secret_key

    @classmethod
    def validate_admin_password(cls) -> None:
        """Refuse to boot production with the default admin password."""
        if cls.ADMIN_PASSWORD in ('', 'admin'):
            raise RuntimeError(
                "CRITICAL: ADMIN_PASSWORD must be set to a non-default value in production!"
            )

    SECRET_KEY = _secret_key  # Will be validated at app startup


class TestingConfig(BaseConfig):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SECRET_KEY = 'testing-secret-key'
    JWT_SECRET_KEY = 'testing-jwt-key'
    ADMIN_USERNAME = 'admin'
    ADMIN_PASSWORD = 'admin-pass'
    CRON_SECRET = 'cron-test-secret'
    VAPID_PUBLIC_KEY = 'test-public-key'
    VAPID_PRIVATE_KEY = 'test-private-key'
    REQUIRE_BUSINESS_APPROVAL = True
    CACHE_TYPE = 'NullCache'


config_map = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig
}


def get_config(config_name: str = 'development'):
    """Get configuration class by name."""
    return config_map.get(config_name, DevelopmentConfig)


def validate_config(config_name: str = 'development') -> None:
    """
    Validate configuration before app startup.

    In production, this ensures SECRET_KEY and the admin password are
    properly configured.

    Raises:
        RuntimeError: If validation fails in production
    """
    if config_name == 'production':
        ProductionConfig.validate_secret_key()
        ProductionConfig.validate_admin_password()
