"""
Scheduled Tasks API endpoints.

Entry points for an external cron (e.g. a hosting platform's scheduler)
when the in-process APScheduler is disabled. Every endpoint requires the
CRON_SECRET, sent as the X-Cron-Secret header or a ?secret= parameter.
"""
import hmac
from functools import wraps

from flask import Blueprint, request, jsonify, current_app
from ..services.scheduled_tasks import scheduled_tasks_service
from ..utils.errors import error_response, unauthorized, ErrorCode

scheduled_tasks_bp = Blueprint('scheduled_tasks', __name__)


def require_cron_secret(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get('CRON_SECRET')
        if not expected:
            return error_response('CRON_SECRET is not configured', ErrorCode.INTERNAL_ERROR, 503)

        provided = request.headers.get('X-Cron-Secret') or request.args.get('secret') or ''
        if not hmac.compare_digest(provided, expected):
            return unauthorized('Invalid cron secret', ErrorCode.INVALID_TOKEN)

        return f(*args, **kwargs)

    return decorated_function


@scheduled_tasks_bp.route('/cleanup', methods=['GET', 'POST'])
@require_cron_secret
def cleanup():
    """
    Delete expired sessions, deactivate expired missions and fail their
    in-progress registries.
    """
    result = scheduled_tasks_service.run_cleanup()
    return jsonify({'success': True, 'result': result})


@scheduled_tasks_bp.route('/winback', methods=['POST'])
@require_cron_secret
def winback():
    """
    Send inactivity win-back notifications.

    Query params:
        business_id: int (optional, default every approved business)
        days: int (optional, default INACTIVITY_DAYS)
        dry_run: 'true' to preview (single business only)
    """
    days = request.args.get('days', type=int) or current_app.config.get('INACTIVITY_DAYS', 30)
    business_id = request.args.get('business_id', type=int)
    dry_run = request.args.get('dry_run', 'false').lower() == 'true'

    if business_id:
        result = scheduled_tasks_service.send_inactivity_winbacks(business_id, days=days, dry_run=dry_run)
    else:
        result = scheduled_tasks_service.send_all_winbacks(days=days)

    return jsonify({'success': True, 'result': result})
