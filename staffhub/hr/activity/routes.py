"""Activity feed routes."""
from flask import jsonify, request
from flask_login import login_required, current_user

from . import activity_bp
from .repositories import ActivityRepository, AuditLogRepository, ACTIVITY_TYPES
from core.utils.api_helpers import (
    error_response, get_json_or_error, handle_api_errors, int_arg,
)

_activity_repo = ActivityRepository()
_audit_repo = AuditLogRepository()


@activity_bp.route('/api/activities', methods=['GET'])
@login_required
def api_get_activities():
    """Activity feed. Without `employees.view` callers only see their own."""
    employee_id = int_arg('employee_id')
    if current_user.permission_scope('employees', 'view') != 'all':
        if not current_user.employee_id:
            return jsonify({'activities': []})
        employee_id = current_user.employee_id
    activities = _activity_repo.get_all(
        employee_id=employee_id,
        activity_type=request.args.get('type') or None,
        start_date=request.args.get('start_date') or None,
        end_date=request.args.get('end_date') or None,
        limit=min(int_arg('limit', 100), 500),
        offset=int_arg('offset', 0),
    )
    return jsonify({'activities': activities})


@activity_bp.route('/api/activities', methods=['POST'])
@login_required
@handle_api_errors
def api_create_activity():
    data, error = get_json_or_error()
    if error:
        return error
    employee_id = data.get('employee_id') or current_user.employee_id
    activity_type = data.get('activity_type')
    description = (data.get('description') or '').strip()

    if not employee_id:
        return error_response('employee_id is required')
    if activity_type not in ACTIVITY_TYPES:
        return error_response(f'activity_type must be one of: {", ".join(ACTIVITY_TYPES)}')
    if not description:
        return error_response('description is required')
    if employee_id != current_user.employee_id and not current_user.has_permission('employees', 'update'):
        return error_response('Permission denied', 403)

    activity_id = _activity_repo.log_activity(
        int(employee_id), activity_type, description, metadata=data.get('metadata'))
    return jsonify({'success': True, 'id': activity_id}), 201


@activity_bp.route('/api/audit-log/<table_name>/<int:row_id>', methods=['GET'])
@login_required
def api_get_audit_log(table_name, row_id):
    if not current_user.is_admin:
        return error_response('Admin access required', 403)
    return jsonify({'entries': _audit_repo.get_for_row(table_name, row_id)})
