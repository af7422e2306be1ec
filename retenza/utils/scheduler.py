"""
Background scheduler for automated tasks.

Handles:
- Cleanup: expired sessions and missions (daily at midnight UTC)
- Inactivity win-back notifications (daily at 10 AM UTC)
"""
import os
import logging

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler = None
_flask_app = None  # Store Flask app reference for context


def init_scheduler(app):
    """
    Initialize the background scheduler.

    Only runs in production or when ENABLE_SCHEDULER=true.
    Only the main gunicorn process should run the scheduler.
    """
    global _scheduler, _flask_app

    _flask_app = app

    if app.config.get('TESTING'):
        logger.debug('[Scheduler] Disabled in testing mode')
        return

    if not (os.getenv('FLASK_ENV') == 'production' or os.getenv('ENABLE_SCHEDULER') == 'true'):
        logger.info('[Scheduler] Disabled (set FLASK_ENV=production or ENABLE_SCHEDULER=true)')
        return

    # Prevent multiple scheduler instances (important for gunicorn workers)
    if os.getenv('SCHEDULER_RUNNING') == 'true':
        logger.info('[Scheduler] Already running in another process')
        return

    try:
        from apscheduler.schedulers.background import BackgroundScheduler
        from apscheduler.triggers.cron import CronTrigger

        _scheduler = BackgroundScheduler(
            timezone='UTC',
            job_defaults={
                'coalesce': True,  # Combine missed runs
                'max_instances': 1,  # Prevent concurrent runs
                'misfire_grace_time': 3600  # 1 hour grace period
            }
        )

        _scheduler.add_job(
            run_cleanup,
            trigger=CronTrigger(hour=0, minute=0),
            id='cleanup',
            name='Purge expired sessions and missions',
            replace_existing=True
        )

        _scheduler.add_job(
            run_inactivity_winbacks,
            trigger=CronTrigger(hour=10, minute=0),
            id='inactivity_winbacks',
            name='Send inactivity win-back notifications',
            replace_existing=True
        )

        _scheduler.start()
        os.environ['SCHEDULER_RUNNING'] = 'true'

        logger.info('[Scheduler] Started with 2 scheduled jobs:')
        logger.info('  - Cleanup: Daily at 0:00 UTC')
        logger.info('  - Inactivity win-back: Daily at 10:00 UTC')

        import atexit
        atexit.register(shutdown_scheduler)

    except Exception as e:
        logger.error(f'[Scheduler] Failed to initialize: {e}')


def shutdown_scheduler():
    """Gracefully shutdown the scheduler."""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info('[Scheduler] Shutdown complete')


def run_cleanup():
    """
    Delete expired sessions, deactivate expired missions and fail their
    in-progress registries. Runs daily at midnight.
    """
    if not _flask_app:
        logger.error('[Scheduler] Flask app not initialized')
        return

    with _flask_app.app_context():
        try:
            from ..services.scheduled_tasks import scheduled_tasks_service

            result = scheduled_tasks_service.run_cleanup()
            logger.info(
                f"[Scheduler] Cleanup complete: {result['deleted_sessions']} sessions, "
                f"{result['expired_missions']} missions, {result['failed_registries']} registries"
            )
        except Exception as e:
            logger.error(f'[Scheduler] Cleanup failed: {e}')


def run_inactivity_winbacks():
    """Notify customers inactive for INACTIVITY_DAYS at each approved business."""
    if not _flask_app:
        logger.error('[Scheduler] Flask app not initialized')
        return

    with _flask_app.app_context():
        try:
            from ..services.scheduled_tasks import scheduled_tasks_service

            days = _flask_app.config.get('INACTIVITY_DAYS', 30)
            totals = scheduled_tasks_service.send_all_winbacks(days=days)
            logger.info(
                f"[Scheduler] Win-back complete: {totals['businesses']} businesses, "
                f"{totals['stored']} stored, {totals['sent']} pushed"
            )
        except Exception as e:
            logger.error(f'[Scheduler] Win-back failed: {e}')
