"""Notification centre API for the signed-in user."""
from flask import jsonify, request
from flask_login import login_required, current_user

from . import notifications_bp
from .repositories import InAppNotificationRepository
from core.utils.api_helpers import int_arg

MAX_PAGE = 100

_in_app_repo = InAppNotificationRepository()


@notifications_bp.route('/notifications/api/list', methods=['GET'])
@login_required
def api_get_in_app_notifications():
    return jsonify({'notifications': _in_app_repo.get_for_user(
        current_user.id,
        limit=max(1, min(int_arg('limit', 20), MAX_PAGE)),
        offset=max(0, int_arg('offset', 0)),
        unread_only=request.args.get('unread_only', '').lower() == 'true',
    )})


@notifications_bp.route('/notifications/api/unread-count', methods=['GET'])
@login_required
def api_get_unread_count():
    return jsonify({'count': _in_app_repo.get_unread_count(current_user.id)})


@notifications_bp.route('/notifications/api/mark-read/<int:notification_id>', methods=['POST'])
@login_required
def api_mark_read(notification_id):
    return jsonify({'success': _in_app_repo.mark_read(notification_id, current_user.id)})


@notifications_bp.route('/notifications/api/mark-all-read', methods=['POST'])
@login_required
def api_mark_all_read():
    return jsonify({'success': True, 'count': _in_app_repo.mark_all_read(current_user.id)})
