"""
CLI Commands for Retenza.

Provides Flask CLI commands for scheduled tasks and administration.

Usage:
    flask loyalty recalculate-tiers --business-id 1   # Re-resolve every customer's tier
    flask loyalty stats --business-id 1               # Customers per tier

    flask scheduled cleanup                           # Expired sessions and missions
    flask scheduled expire-missions --dry-run         # Preview mission expiration
    flask scheduled winback --business-id 1 --days 30 # Inactivity win-back notifications
"""
from .loyalty import init_app as init_loyalty_commands
from .scheduled import init_app as init_scheduled_commands


def init_app(app):
    """Register all CLI commands with the Flask app."""
    init_loyalty_commands(app)
    init_scheduled_commands(app)
