"""
CLI Commands for loyalty program maintenance.

# Re-resolve tiers after a bulk data import
flask loyalty recalculate-tiers --business-id=1
"""

import click
from flask.cli import with_appcontext
from ..extensions import db
from ..models import Business, CustomerLoyalty, LoyaltyProgram
from ..services.tier_service import TierService
from ..utils.exceptions import RetenzaError


@click.group('loyalty')
def loyalty_cli():
    """Loyalty program commands."""
    pass


@loyalty_cli.command('recalculate-tiers')
@click.option('--business-id', type=int, help='Specific business ID (or all with a program if not specified)')
@with_appcontext
def recalculate_tiers(business_id):
    """Recompute current_tier_name for every customer."""
    if business_id:
        business_ids = [business_id]
    else:
        business_ids = [p.business_id for p in LoyaltyProgram.query.all()]

    total_updated = 0
    for bid in business_ids:
        try:
            result = TierService(bid).recalculate_all()
        except RetenzaError as e:
            click.echo(f"Business {bid}: skipped ({e.message})")
            continue

        click.echo(f"Business {bid}: {result['updated']} of {result['total']} customers changed tier")
        total_updated += result['updated']

    click.echo(f"\nTOTAL: {total_updated} customers updated")


@loyalty_cli.command('stats')
@click.option('--business-id', type=int, required=True, help='Business ID')
@with_appcontext
def tier_stats(business_id):
    """Show customers per tier for a business."""
    business = db.session.get(Business, business_id)
    if not business:
        click.echo(f"Business {business_id} not found")
        return

    rows = db.session.query(
        CustomerLoyalty.current_tier_name, db.func.count(CustomerLoyalty.customer_id)
    ).filter_by(business_id=business_id).group_by(CustomerLoyalty.current_tier_name).all()

    click.echo(f"\nTier stats for {business.name}:")
    if not rows:
        click.echo("  No customers enrolled")
    for tier_name, count in rows:
        click.echo(f"  {tier_name or 'Unassigned'}: {count}")


def init_app(app):
    """Register CLI commands with the Flask app."""
    app.cli.add_command(loyalty_cli)
