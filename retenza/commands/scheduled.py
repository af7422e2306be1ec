"""
CLI Commands for Scheduled Tasks.

These commands can be run manually or via cron jobs:

# Cleanup (run daily at midnight)
0 0 * * * cd /app && flask scheduled cleanup

# Inactivity win-back (run daily at 10 AM)
0 10 * * * cd /app && flask scheduled winback --days=30
"""

import click
from flask import current_app
from flask.cli import with_appcontext
from ..extensions import db
from ..models import Business
from ..services.scheduled_tasks import scheduled_tasks_service


@click.group('scheduled')
def scheduled_cli():
    """Scheduled task commands."""
    pass


@scheduled_cli.command('cleanup')
@with_appcontext
def cleanup():
    """Delete expired sessions and expire missions."""
    result = scheduled_tasks_service.run_cleanup()

    click.echo(f"Sessions deleted: {result['deleted_sessions']}")
    click.echo(f"Missions expired: {result['expired_missions']}")
    click.echo(f"Registries failed: {result['failed_registries']}")


@scheduled_cli.command('expire-missions')
@click.option('--dry-run', is_flag=True, help='Preview without changing missions')
@with_appcontext
def expire_missions(dry_run):
    """Deactivate expired missions and fail their open registries."""
    result = scheduled_tasks_service.expire_missions(dry_run=dry_run)

    prefix = '[DRY RUN] ' if dry_run else ''
    click.echo(f"{prefix}Missions expired: {result['expired_missions']}")
    click.echo(f"{prefix}Registries failed: {result['failed_registries']}")


@scheduled_cli.command('winback')
@click.option('--business-id', type=int, help='Specific business ID (or all approved if not specified)')
@click.option('--days', type=int, default=None, help='Inactivity window in days')
@click.option('--dry-run', is_flag=True, help='Preview without sending notifications')
@with_appcontext
def winback(business_id, days, dry_run):
    """Send inactivity win-back notifications."""
    days = days or current_app.config.get('INACTIVITY_DAYS', 30)

    if business_id:
        businesses = [db.session.get(Business, business_id)]
        if not businesses[0]:
            click.echo(f"Business {business_id} not found")
            return
    else:
        businesses = Business.query.filter_by(approved=True).all()

    total = 0
    for business in businesses:
        result = scheduled_tasks_service.send_inactivity_winbacks(
            business.id, days=days, dry_run=dry_run
        )
        click.echo(
            f"{'[DRY RUN] ' if dry_run else ''}{business.name}: "
            f"{result['inactive_customers']} inactive, {result['sent']} pushed"
        )
        total += result['inactive_customers']

    click.echo(f"\nTOTAL: {total} inactive customers")


def init_app(app):
    """Register CLI commands with the Flask app."""
    app.cli.add_command(scheduled_cli)
