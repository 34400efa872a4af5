"""Systems and system-access routes."""
from flask import jsonify, request
from flask_login import login_required, current_user

from . import access_bp
from .repositories import SystemRepository, AccessRepository
from .services import AccessService
from core.utils.api_helpers import (
    error_response, get_json_or_error, handle_api_errors, int_arg,
    permission_required, service_response,
)

_system_repo = SystemRepository()
_access_repo = AccessRepository()
_access_service = AccessService()


# ============== Systems ==============

@access_bp.route('/api/systems', methods=['GET'])
@login_required
def api_get_systems():
    return jsonify({'systems': _system_repo.get_all()})


@access_bp.route('/api/systems/<int:system_id>', methods=['GET'])
@login_required
def api_get_system(system_id):
    system = _system_repo.get_by_id(system_id)
    if not system:
        return error_response('System not found', 404)
    return jsonify(system)


@access_bp.route('/api/systems', methods=['POST'])
@permission_required('systems', 'manage')
@handle_api_errors
def api_create_system():
    data, error = get_json_or_error()
    if error:
        return error
    name = (data.get('name') or '').strip()
    if not name:
        return error_response('System name is required')
    try:
        system_id = _system_repo.create(name, data.get('description'), data.get('category'))
    except ValueError as e:
        return error_response(str(e), 409)
    return jsonify({'success': True, 'id': system_id}), 201


@access_bp.route('/api/systems/<int:system_id>', methods=['PUT'])
@permission_required('systems', 'manage')
@handle_api_errors
def api_update_system(system_id):
    data, error = get_json_or_error()
    if error:
        return error
    if not _system_repo.get_by_id(system_id):
        return error_response('System not found', 404)
    fields = {k: data[k] for k in ('name', 'description', 'category') if k in data}
    if 'name' in fields and not (fields['name'] or '').strip():
        return error_response('System name cannot be empty')
    try:
        _system_repo.update(system_id, **fields)
    except ValueError as e:
        return error_response(str(e), 409)
    return jsonify({'success': True})


# ============== System Access ==============

def _can_view_all_access():
    return current_user.has_permission('system_access', 'view')


@access_bp.route('/api/system-access', methods=['GET'])
@login_required
def api_get_system_access():
    employee_id = int_arg('employee_id')
    if not _can_view_all_access():
        if not current_user.employee_id:
            return jsonify({'entries': []})
        employee_id = current_user.employee_id
    entries = _access_repo.get_all(
        employee_id=employee_id,
        system_id=int_arg('system_id'),
        status=request.args.get('status') or None,
    )
    return jsonify({'entries': entries})


@access_bp.route('/api/system-access/<int:access_id>', methods=['GET'])
@login_required
def api_get_access_entry(access_id):
    entry = _access_repo.get_by_id(access_id)
    if not entry:
        return error_response('Access entry not found', 404)
    if entry['employee_id'] != current_user.employee_id and not _can_view_all_access():
        return error_response('Permission denied', 403)
    return jsonify(entry)


@access_bp.route('/api/employees/<int:employee_id>/system-access', methods=['GET'])
@login_required
def api_get_employee_access(employee_id):
    if employee_id != current_user.employee_id and not _can_view_all_access():
        return error_response('Permission denied', 403)
    return jsonify({'entries': _access_repo.get_for_employee(employee_id)})


@access_bp.route('/api/system-access', methods=['POST'])
@permission_required('system_access', 'request')
@handle_api_errors
def api_request_access():
    """Request access for yourself, or for anyone with `system_access.grant`."""
    data, error = get_json_or_error()
    if error:
        return error
    employee_id = data.get('employee_id') or current_user.employee_id
    system_id = data.get('system_id')
    if not employee_id or not system_id:
        return error_response('employee_id and system_id are required')
    if employee_id != current_user.employee_id and not current_user.has_permission('system_access', 'grant'):
        return error_response('You can only request access for yourself', 403)

    result = _access_service.request_access(
        int(employee_id), int(system_id),
        access_level=data.get('access_level') or 'read',
        expires_at=data.get('expires_at'),
    )
    if not result.success:
        return service_response(result)
    return jsonify({'success': True, 'id': result.data['id']}), 201


@access_bp.route('/api/system-access/<int:access_id>', methods=['PUT', 'PATCH'])
@permission_required('system_access', 'grant')
@handle_api_errors
def api_update_access(access_id):
    data, error = get_json_or_error()
    if error:
        return error
    return service_response(
        _access_service.update_access(access_id, data, acting_employee_id=current_user.employee_id))
