"""Offboarding routes."""
from flask import jsonify
from flask_login import login_required, current_user

from . import offboarding_bp
from .services import OffboardingService
from core.approvals.engine import ApprovalError
from core.approvals.routes import approval_error_status
from core.utils.api_helpers import (
    error_response, get_json_or_error, handle_api_errors, permission_required,
)
from hr.directory.repositories import EmployeeRepository

_employee_repo = EmployeeRepository()
_offboarding_service = OffboardingService()


@offboarding_bp.route('/api/employees/<int:employee_id>/offboard', methods=['POST'])
@permission_required('employees', 'offboard')
@handle_api_errors
def api_start_offboarding(employee_id):
    data, error = get_json_or_error()
    if error:
        return error
    if not _employee_repo.get_by_id(employee_id):
        return error_response('Employee not found', 404)
    try:
        result = _offboarding_service.start_offboarding(
            employee_id, current_user,
            last_day=data.get('last_day'),
            reason=data.get('reason'),
            notes=data.get('notes'),
        )
    except ApprovalError as e:
        return error_response(str(e), approval_error_status(e))
    return jsonify({'success': True, **result}), 201


@offboarding_bp.route('/api/offboarding/<int:ticket_id>', methods=['GET'])
@login_required
def api_get_offboarding_status(ticket_id):
    if not (current_user.has_permission('employees', 'offboard')
            or current_user.has_permission('tickets', 'view')):
        return error_response('Permission denied', 403)
    status = _offboarding_service.get_offboarding_status(ticket_id)
    if not status:
        return error_response('Offboarding ticket not found', 404)
    return jsonify(status)
