"""
Retenza Customer Loyalty Platform
Flask application factory
"""
import os
import logging
from flask import Flask
from flask_cors import CORS

from .extensions import db, migrate
from .config import get_config, validate_config
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def create_app(config_name: str = None) -> Flask:
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration environment (development, production, testing)

    Returns:
        Configured Flask application
    """
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    # Setup logging before anything else
    setup_logging()

    if config_name == 'production':
        validate_config(config_name)

    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Initialize caching (Redis when REDIS_URL is set)
    from .utils.cache import init_cache
    init_cache(app)

    # Configure CORS - allow the business and customer web apps
    CORS(
        app,
        origins=app.config['CORS_ORIGINS'],
        allow_headers=['Content-Type', 'Authorization', 'X-Cron-Secret']
    )

    # Register blueprints
    register_blueprints(app)

    # Register CLI commands
    from .commands import init_app as init_commands
    init_commands(app)

    # Initialize background scheduler for automated tasks (production only)
    # Handles: session/mission cleanup, inactivity win-back
    from .utils.scheduler import init_scheduler
    init_scheduler(app)

    # Register error handlers
    register_error_handlers(app)

    # Health check endpoint
    @app.route('/health')
    def health_check():
        return {'status': 'healthy', 'service': 'retenza'}

    return app


def register_blueprints(app: Flask) -> None:
    """Register all API blueprints."""
    from .api.auth import auth_bp
    from .api.admin import admin_bp
    from .api.business import business_bp
    from .api.loyalty import loyalty_bp
    from .api.missions import missions_bp
    from .api.customer import customer_bp
    from .api.notifications import notifications_bp
    from .api.scheduled_tasks import scheduled_tasks_bp

    # Signup, login, sessions
    app.register_blueprint(auth_bp, url_prefix='/api/auth')

    # Platform admin (business approval)
    app.register_blueprint(admin_bp, url_prefix='/api/admin')

    # Business app
    app.register_blueprint(business_bp, url_prefix='/api/business')
    app.register_blueprint(loyalty_bp, url_prefix='/api/business/loyalty')
    app.register_blueprint(missions_bp, url_prefix='/api/business')

    # Customer app
    app.register_blueprint(customer_bp, url_prefix='/api/customer')
    app.register_blueprint(notifications_bp, url_prefix='/api/push')

    # External cron
    app.register_blueprint(scheduled_tasks_bp, url_prefix='/api/scheduled-tasks')


def register_error_handlers(app: Flask) -> None:
    """Register error handlers."""
    from .utils.errors import (
        ErrorCode,
        bad_request,
        error_response,
        internal_error,
        not_found,
        register_exception_handlers,
    )

    register_exception_handlers(app)

    @app.errorhandler(400)
    def handle_bad_request(error):
        return bad_request(getattr(error, 'description', None) or 'Bad request')

    @app.errorhandler(404)
    def handle_not_found(error):
        return not_found('Not found')

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        return error_response('Method not allowed', ErrorCode.INVALID_REQUEST, 405, log_error=False)

    @app.errorhandler(500)
    def handle_internal_error(error):
        db.session.rollback()
        return internal_error()
