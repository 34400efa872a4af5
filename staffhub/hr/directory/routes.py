"""Directory routes: departments, employees and hierarchy."""
from flask import jsonify, request
from flask_login import login_required, current_user

from . import directory_bp
from .repositories import DepartmentRepository, EmployeeRepository
from .services import DirectoryService
from core.utils.api_helpers import (
    error_response, get_json_or_error, handle_api_errors, int_arg,
    permission_required, service_response,
)

_department_repo = DepartmentRepository()
_employee_repo = EmployeeRepository()
_directory_service = DirectoryService()


# ============== Departments ==============

@directory_bp.route('/api/departments', methods=['GET'])
@login_required
def api_get_departments():
    return jsonify({'departments': _department_repo.get_all()})


@directory_bp.route('/api/departments/<int:department_id>', methods=['GET'])
@login_required
def api_get_department(department_id):
    department = _department_repo.get_by_id(department_id)
    if not department:
        return error_response('Department not found', 404)
    return jsonify(department)


@directory_bp.route('/api/departments', methods=['POST'])
@permission_required('departments', 'manage')
@handle_api_errors
def api_create_department():
    data, error = get_json_or_error()
    if error:
        return error
    result = _directory_service.create_department(data)
    if not result.success:
        return service_response(result)
    return jsonify({'success': True, 'id': result.data['id']}), 201


@directory_bp.route('/api/departments/<int:department_id>', methods=['PUT'])
@permission_required('departments', 'manage')
@handle_api_errors
def api_update_department(department_id):
    data, error = get_json_or_error()
    if error:
        return error
    return service_response(_directory_service.update_department(department_id, data))


# ============== Employees ==============

@directory_bp.route('/api/employees', methods=['GET'])
@login_required
def api_get_employees():
    employees = _directory_service.list_employees(
        current_user,
        status=request.args.get('status') or None,
        department_id=int_arg('department_id'),
        q=(request.args.get('q') or '').strip() or None,
    )
    return jsonify({'employees': employees})


@directory_bp.route('/api/employees/<int:employee_id>', methods=['GET'])
@login_required
def api_get_employee(employee_id):
    employee = _directory_service.get_employee_detail(employee_id)
    if not employee:
        return error_response('Employee not found', 404)
    if not _directory_service.can_view(current_user, employee):
        return error_response('Permission denied', 403)
    employee['direct_reports'] = _directory_service.visible(current_user, employee.get('direct_reports') or [])
    return jsonify(employee)


@directory_bp.route('/api/employees', methods=['POST'])
@permission_required('employees', 'create')
@handle_api_errors
def api_create_employee():
    data, error = get_json_or_error()
    if error:
        return error
    result = _directory_service.create_employee(data, created_by_user_id=current_user.id)
    if not result.success:
        return service_response(result)
    return jsonify({'success': True, 'id': result.data['id']}), 201


@directory_bp.route('/api/employees/<int:employee_id>', methods=['PUT'])
@permission_required('employees', 'update')
@handle_api_errors
def api_update_employee(employee_id):
    data, error = get_json_or_error()
    if error:
        return error
    return service_response(
        _directory_service.update_employee(employee_id, data, acted_by=current_user.employee_id))


# ============== Hierarchy ==============

def _visible_employee(employee_id):
    """(employee, error) for a hierarchy lookup rooted at `employee_id`."""
    employee = _employee_repo.get_by_id(employee_id)
    if not employee:
        return None, error_response('Employee not found', 404)
    if not _directory_service.can_view(current_user, employee):
        return None, error_response('Permission denied', 403)
    return employee, None


@directory_bp.route('/api/employees/<int:employee_id>/direct-reports', methods=['GET'])
@permission_required('employees', 'view')
def api_get_direct_reports(employee_id):
    _, error = _visible_employee(employee_id)
    if error:
        return error
    return jsonify({'employees': _directory_service.get_direct_reports(employee_id, viewer=current_user)})


@directory_bp.route('/api/employees/<int:employee_id>/manager-chain', methods=['GET'])
@permission_required('employees', 'view')
def api_get_manager_chain(employee_id):
    _, error = _visible_employee(employee_id)
    if error:
        return error
    return jsonify({'chain': _directory_service.get_manager_chain(employee_id, viewer=current_user)})


@directory_bp.route('/api/org-chart', methods=['GET'])
@permission_required('employees', 'view')
def api_get_org_chart():
    return jsonify({'roots': _directory_service.get_org_chart(viewer=current_user)})
