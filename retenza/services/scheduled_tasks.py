"""
Scheduled Tasks Service for Retenza.

Handles automated background jobs:
- Session cleanup (expired bearer-token sessions)
- Mission expiration (deactivate expired missions, fail open attempts)
- Inactivity win-back notifications

These tasks can be triggered by:
1. Flask CLI commands (for cron jobs)
2. The cron HTTP endpoint guarded by CRON_SECRET
3. The in-process APScheduler jobs
"""

from datetime import datetime, timedelta
from typing import Dict, Any, Optional
from sqlalchemy import func
from ..extensions import db
from ..models import Business, CustomerLoyalty, Mission, MissionRegistry, MissionStatus, Notification, Transaction
from .auth_service import AuthService
from .notification_service import NotificationService


class ScheduledTasksService:
    """
    Service for running scheduled/background tasks.
    """

    # ==================== CLEANUP ====================

    def expire_missions(self, now: datetime = None, dry_run: bool = False) -> Dict[str, Any]:
        """
        Deactivate missions past expires_at and fail their in-progress registries.

        Missions are kept (not deleted) so completed registries keep their history.
        """
        now = now or datetime.utcnow()

        missions = Mission.query.filter(
            Mission.is_active.is_(True),
            Mission.expires_at <= now,
        ).all()
        mission_ids = [m.id for m in missions]

        registries = []
        if mission_ids:
            registries = MissionRegistry.query.filter(
                MissionRegistry.mission_id.in_(mission_ids),
                MissionRegistry.status == MissionStatus.IN_PROGRESS.value,
            ).all()

        if not dry_run:
            for mission in missions:
                mission.is_active = False
            for registry in registries:
                registry.status = MissionStatus.FAILED.value
                registry.completed_at = now
                registry.notes = registry.notes or 'Mission expired'
            db.session.commit()

        return {
            'expired_missions': len(missions),
            'failed_registries': len(registries),
            'dry_run': dry_run,
        }

    def run_cleanup(self, now: datetime = None) -> Dict[str, Any]:
        """Everything the daily cron does: sessions plus missions."""
        now = now or datetime.utcnow()
        result = {'deleted_sessions': AuthService.purge_expired_sessions(now)}
        result.update(self.expire_missions(now))
        return result

    # ==================== WIN-BACK ====================

    def send_inactivity_winbacks(
        self,
        business_id: int,
        days: int = 30,
        now: datetime = None,
        dry_run: bool = False
    ) -> Dict[str, Any]:
        """
        Nudge customers who have not transacted at a business for `days` days.

        A customer who already received a win-back within the window is skipped.
        Customers with no transactions count from their enrollment date.
        """
        now = now or datetime.utcnow()
        cutoff = now - timedelta(days=days)

        last_tx = dict(
            db.session.query(Transaction.customer_id, func.max(Transaction.created_at)).filter(
                Transaction.business_id == business_id
            ).group_by(Transaction.customer_id).all()
        )
        recently_nudged = {
            row[0] for row in db.session.query(Notification.customer_id).filter(
                Notification.business_id == business_id,
                Notification.type == 'inactivity_winback',
                Notification.sent_at >= cutoff,
            ).all()
        }

        inactive = []
        for loyalty in CustomerLoyalty.query.filter_by(business_id=business_id).all():
            last_seen = last_tx.get(loyalty.customer_id) or loyalty.created_at
            if last_seen and last_seen < cutoff and loyalty.customer_id not in recently_nudged:
                inactive.append(loyalty.customer_id)

        result = {
            'business_id': business_id,
            'inactive_customers': len(inactive),
            'skipped_recently_nudged': len(recently_nudged),
            'dry_run': dry_run,
            'stored': 0,
            'sent': 0,
            'failed': 0,
        }
        if dry_run or not inactive:
            return result

        service = NotificationService(business_id)
        notifications = [service.create(cid, 'inactivity_winback', days=days) for cid in inactive]
        db.session.commit()
        result.update(service.send_all(notifications))
        result['stored'] = len(notifications)
        return result

    def send_all_winbacks(self, days: int = 30, now: Optional[datetime] = None) -> Dict[str, Any]:
        totals = {'businesses': 0, 'stored': 0, 'sent': 0, 'failed': 0}
        for business in Business.query.filter_by(approved=True).all():
            result = self.send_inactivity_winbacks(business.id, days=days, now=now)
            totals['businesses'] += 1
            for key in ('stored', 'sent', 'failed'):
                totals[key] += result[key]
        return totals


# Singleton instance
scheduled_tasks_service = ScheduledTasksService()
