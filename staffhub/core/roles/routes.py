"""Role and permission routes."""
from flask import jsonify, request
from flask_login import login_required, current_user

from . import roles_bp
from .repositories import RoleRepository, PermissionRepository
from core.utils.api_helpers import (
    admin_required, get_json_or_error, error_response, safe_error_response,
)

_role_repo = RoleRepository()
_perm_repo = PermissionRepository()


# ============== ROLE MANAGEMENT ==============

@roles_bp.route('/api/roles', methods=['GET'])
@login_required
def api_get_roles():
    """All roles with their permissions."""
    roles = _role_repo.get_all()
    for role in roles:
        role['permissions'] = _perm_repo.get_role_permissions(role['id'])
    return jsonify(roles)


@roles_bp.route('/api/roles/<int:role_id>', methods=['GET'])
@login_required
def api_get_role(role_id):
    role = _role_repo.get(role_id)
    if not role:
        return error_response('Role not found', 404)
    role['permissions'] = _perm_repo.get_role_permissions(role_id)
    return jsonify(role)


@roles_bp.route('/api/roles', methods=['POST'])
@admin_required
def api_create_role():
    data, error = get_json_or_error()
    if error:
        return error
    name = (data.get('name') or '').strip()
    if not name:
        return error_response('Name is required')
    try:
        role_id = _role_repo.save(
            name=name,
            description=data.get('description'),
            is_default=data.get('is_default', False),
        )
        if data.get('permission_ids'):
            _perm_repo.set_role_permissions(role_id, data['permission_ids'])
        return jsonify({'success': True, 'id': role_id})
    except Exception as e:
        return safe_error_response(e)


@roles_bp.route('/api/roles/<int:role_id>', methods=['PUT'])
@admin_required
def api_update_role(role_id):
    data, error = get_json_or_error()
    if error:
        return error
    try:
        updated = _role_repo.update(
            role_id=role_id,
            name=(data.get('name') or '').strip() or None,
            description=data.get('description'),
            is_default=data.get('is_default'),
        )
        if updated:
            return jsonify({'success': True})
        return error_response('Role not found', 404)
    except Exception as e:
        return safe_error_response(e)


@roles_bp.route('/api/roles/<int:role_id>', methods=['DELETE'])
@admin_required
def api_delete_role(role_id):
    try:
        if _role_repo.delete(role_id):
            return jsonify({'success': True})
        return error_response('Role not found', 404)
    except Exception as e:
        return safe_error_response(e)


# ============== PERMISSIONS ==============

@roles_bp.route('/api/permissions', methods=['GET'])
@login_required
def api_get_permissions():
    """Permissions grouped by resource."""
    return jsonify({'resources': _perm_repo.get_all()})


@roles_bp.route('/api/permissions/flat', methods=['GET'])
@login_required
def api_get_permissions_flat():
    return jsonify({'permissions': _perm_repo.get_flat()})


@roles_bp.route('/api/permissions', methods=['POST'])
@admin_required
def api_create_permission():
    data, error = get_json_or_error()
    if error:
        return error
    resource = (data.get('resource') or '').strip()
    action = (data.get('action') or '').strip()
    if not resource or not action:
        return error_response('resource and action are required')
    scope = data.get('scope', 'all')
    name = (data.get('name') or '').strip() or f'{resource}.{action}.{scope}'
    try:
        perm_id = _perm_repo.create(
            name, resource, action, scope=scope,
            field_level=data.get('field_level'),
            description=data.get('description'),
        )
        return jsonify({'success': True, 'id': perm_id})
    except Exception as e:
        return safe_error_response(e)


@roles_bp.route('/api/permissions/<int:permission_id>', methods=['PUT'])
@admin_required
def api_update_permission(permission_id):
    data, error = get_json_or_error()
    if error:
        return error
    try:
        if _perm_repo.update(permission_id, **data):
            return jsonify({'success': True})
        return error_response('Permission not found', 404)
    except Exception as e:
        return safe_error_response(e)


@roles_bp.route('/api/permissions/<int:permission_id>', methods=['DELETE'])
@admin_required
def api_delete_permission(permission_id):
    if _perm_repo.delete(permission_id):
        return jsonify({'success': True})
    return error_response('Permission not found', 404)


@roles_bp.route('/api/roles/<int:role_id>/permissions', methods=['GET'])
@login_required
def api_get_role_perms(role_id):
    return jsonify({'permissions': _perm_repo.get_role_permissions(role_id)})


@roles_bp.route('/api/roles/<int:role_id>/permissions', methods=['PUT'])
@admin_required
def api_set_role_perms(role_id):
    """Replace the role's permission set."""
    data, error = get_json_or_error()
    if error:
        return error
    permission_ids = data.get('permission_ids')
    if not isinstance(permission_ids, list):
        return error_response('permission_ids must be a list')
    try:
        _perm_repo.set_role_permissions(role_id, permission_ids)
        return jsonify({'success': True})
    except Exception as e:
        return safe_error_response(e)


@roles_bp.route('/api/roles/<int:role_id>/permissions/<int:permission_id>', methods=['POST'])
@admin_required
def api_add_role_perm(role_id, permission_id):
    try:
        added = _perm_repo.add_permission_to_role(role_id, permission_id)
        return jsonify({'success': True, 'added': added})
    except Exception as e:
        return safe_error_response(e)


@roles_bp.route('/api/roles/<int:role_id>/permissions/<int:permission_id>', methods=['DELETE'])
@admin_required
def api_remove_role_perm(role_id, permission_id):
    if _perm_repo.remove_permission_from_role(role_id, permission_id):
        return jsonify({'success': True})
    return error_response('Permission not granted to role', 404)


# ============== EMPLOYEE ROLES ==============

@roles_bp.route('/api/employees/<int:employee_id>/roles', methods=['GET'])
@login_required
def api_get_employee_roles(employee_id):
    if employee_id != current_user.employee_id and not current_user.has_permission('roles', 'manage'):
        return error_response('Permission denied', 403)
    return jsonify({'roles': _role_repo.get_employee_roles(employee_id)})


@roles_bp.route('/api/employees/<int:employee_id>/roles', methods=['POST'])
@login_required
def api_assign_employee_role(employee_id):
    if not current_user.has_permission('roles', 'manage'):
        return error_response('Permission denied', 403)
    data, error = get_json_or_error()
    if error:
        return error
    role_id = data.get('role_id')
    if not role_id:
        return error_response('role_id is required')
    try:
        assigned = _role_repo.assign_role(employee_id, int(role_id), assigned_by=current_user.id)
        return jsonify({'success': True, 'assigned': assigned})
    except Exception as e:
        return safe_error_response(e)


@roles_bp.route('/api/employees/<int:employee_id>/roles/<int:role_id>', methods=['DELETE'])
@login_required
def api_remove_employee_role(employee_id, role_id):
    if not current_user.has_permission('roles', 'manage'):
        return error_response('Permission denied', 403)
    if _role_repo.remove_role(employee_id, role_id):
        return jsonify({'success': True})
    return error_response('Role not assigned to employee', 404)


@roles_bp.route('/api/employees/<int:employee_id>/permissions/<resource>', methods=['GET'])
@login_required
def api_get_employee_resource_permissions(employee_id, resource):
    """Scope per action plus merged field-level rules for one resource."""
    if employee_id != current_user.employee_id and not current_user.has_permission('roles', 'manage'):
        return error_response('Permission denied', 403)
    grants = _perm_repo.get_permission_map(employee_id)
    actions = {
        key.split('.', 1)[1]: scope for key, scope in grants.items()
        if key.split('.', 1)[0] == resource
    }
    return jsonify({
        'resource': resource,
        'actions': actions,
        'field_level': _perm_repo.get_field_level_permissions(employee_id, resource),
    })
