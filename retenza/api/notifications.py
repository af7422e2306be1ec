"""
Web Push API endpoints for customers.

The browser fetches the VAPID public key, subscribes through its push
service and posts the subscription here for each business. Stored
notifications double as an in-app inbox.
"""
from flask import Blueprint, request, jsonify, g, current_app
from ..middleware.auth import require_customer_auth
from ..services.notification_service import NotificationService
from ..utils.errors import bad_request, error_response, ErrorCode

notifications_bp = Blueprint('notifications', __name__)

MAX_INBOX_LIMIT = 200


def _business_id(data):
    business_id = data.get('business_id')
    if isinstance(business_id, bool) or not isinstance(business_id, int):
        return None
    return business_id


@notifications_bp.route('/vapid-public-key', methods=['GET'])
def vapid_public_key():
    key = current_app.config.get('VAPID_PUBLIC_KEY')
    if not key:
        return error_response('Push notifications are not configured', ErrorCode.PUSH_SERVICE_ERROR, 503)
    return jsonify({'public_key': key})


@notifications_bp.route('/subscribe', methods=['POST'])
@require_customer_auth
def subscribe():
    """
    Request body:
        business_id: int (required)
        subscription: {endpoint, keys: {p256dh, auth}} (required)
    """
    data = request.json or {}
    business_id = _business_id(data)
    if business_id is None:
        return bad_request('business_id is required', ErrorCode.MISSING_FIELD)

    record = NotificationService(business_id).subscribe(g.customer_id, data.get('subscription'))
    return jsonify({'success': True, 'subscription': record.to_dict()}), 201


@notifications_bp.route('/subscribe', methods=['DELETE'])
@require_customer_auth
def unsubscribe():
    """
    Request body:
        business_id: int (required)
    """
    data = request.json or {}
    business_id = _business_id(data)
    if business_id is None:
        return bad_request('business_id is required', ErrorCode.MISSING_FIELD)

    removed = NotificationService(business_id).unsubscribe(g.customer_id)
    return jsonify({'success': True, 'removed': removed})


# ==================== INBOX ====================

@notifications_bp.route('/notifications', methods=['GET'])
@require_customer_auth
def list_notifications():
    """
    Query params:
        business_id: int (optional)
        limit: int (optional, default 50)
    """
    business_id = request.args.get('business_id', type=int)
    limit = min(max(request.args.get('limit', 50, type=int), 1), MAX_INBOX_LIMIT)

    notifications = NotificationService.list_for_customer(g.customer_id, business_id, limit)
    return jsonify({
        'notifications': [n.to_dict() for n in notifications],
        'unread_count': NotificationService.unread_count(g.customer_id, business_id)
    })


@notifications_bp.route('/notifications/<int:notification_id>/read', methods=['PATCH'])
@require_customer_auth
def mark_read(notification_id):
    notification = NotificationService.mark_read(g.customer_id, notification_id)
    return jsonify({'success': True, 'notification': notification.to_dict()})
