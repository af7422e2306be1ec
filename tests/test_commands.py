"""
Tests for the flask CLI commands (loyalty and scheduled groups).
"""
from datetime import datetime, timedelta

from retenza.extensions import db
from retenza.models import CustomerLoyalty, Mission


class TestLoyaltyCommands:
    """Tests for `flask loyalty ...`."""

    def test_recalculate_tiers(self, app, business, customer):
        db.session.add(CustomerLoyalty(
            customer_id=customer.id, business_id=business.id,
            points=600, redeemable_points=0, current_tier_name='Bronze',
        ))
        db.session.commit()

        result = app.test_cli_runner().invoke(args=['loyalty', 'recalculate-tiers', '--business-id', str(business.id)])

        assert result.exit_code == 0
        assert '1 of 1 customers changed tier' in result.output
        assert CustomerLoyalty.query.one().current_tier_name == 'Gold'

    def test_stats(self, app, business, customer):
        db.session.add(CustomerLoyalty(
            customer_id=customer.id, business_id=business.id,
            points=150, redeemable_points=0, current_tier_name='Silver',
        ))
        db.session.commit()

        result = app.test_cli_runner().invoke(args=['loyalty', 'stats', '--business-id', str(business.id)])

        assert 'Silver: 1' in result.output

    def test_stats_unknown_business(self, app):
        result = app.test_cli_runner().invoke(args=['loyalty', 'stats', '--business-id', '999'])
        assert 'not found' in result.output


class TestScheduledCommands:
    """Tests for `flask scheduled ...`."""

    def test_expire_missions_dry_run(self, app, business):
        mission = Mission(
            business_id=business.id, title='Old', description='Expired offer',
            applicable_tiers=['all'], filters={}, is_active=True,
            expires_at=datetime.utcnow() - timedelta(days=1),
        )
        db.session.add(mission)
        db.session.commit()

        result = app.test_cli_runner().invoke(args=['scheduled', 'expire-missions', '--dry-run'])

        assert '[DRY RUN] Missions expired: 1' in result.output
        assert mission.is_active is True

    def test_cleanup(self, app):
        result = app.test_cli_runner().invoke(args=['scheduled', 'cleanup'])
        assert result.exit_code == 0
        assert 'Sessions deleted: 0' in result.output

    def test_winback_unknown_business(self, app):
        result = app.test_cli_runner().invoke(args=['scheduled', 'winback', '--business-id', '999'])
        assert 'Business 999 not found' in result.output
