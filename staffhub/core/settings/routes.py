"""Key-value store routes.

Entries are scoped to the calling user, except in the global namespaces
(`app_config`, `announcements`) which everyone reads and only admins write.
"""
from flask import jsonify, request
from flask_login import login_required, current_user

from . import settings_bp
from .repositories import KeyValueRepository, NAMESPACES, GLOBAL_NAMESPACES
from core.utils.api_helpers import error_response, get_json_or_error, handle_api_errors

_kv_repo = KeyValueRepository()


def _owner(namespace):
    return None if namespace in GLOBAL_NAMESPACES else current_user.id


def _check_namespace(namespace, write=False):
    if namespace not in NAMESPACES:
        return error_response(f'Unknown namespace: {namespace}', 404)
    if write and namespace in GLOBAL_NAMESPACES and not current_user.is_admin:
        return error_response('Admin access required', 403)
    return None


@settings_bp.route('/api/kv/<namespace>', methods=['GET'])
@login_required
def api_kv_namespace(namespace):
    error = _check_namespace(namespace)
    if error:
        return error
    entries = _kv_repo.get_namespace(namespace, user_id=_owner(namespace))
    return jsonify({'namespace': namespace, 'entries': {e['key']: e['value'] for e in entries}})


@settings_bp.route('/api/kv/<namespace>/<key>', methods=['GET'])
@login_required
def api_kv_get(namespace, key):
    error = _check_namespace(namespace)
    if error:
        return error
    entry = _kv_repo.get(namespace, key, user_id=_owner(namespace))
    if not entry:
        return error_response('Key not found', 404)
    return jsonify({'key': key, 'value': entry['value'], 'expires_at': entry.get('expires_at')})


@settings_bp.route('/api/kv/<namespace>/<key>', methods=['PUT'])
@login_required
@handle_api_errors
def api_kv_set(namespace, key):
    error = _check_namespace(namespace, write=True)
    if error:
        return error
    data, error = get_json_or_error()
    if error:
        return error
    if 'value' not in data:
        return error_response('value is required')
    entry = _kv_repo.set(
        namespace, key, data['value'],
        user_id=_owner(namespace),
        expires_at=data.get('expires_at'),
        overwrite=request.args.get('overwrite', 'true').lower() != 'false',
    )
    return jsonify({'success': True, 'key': key, 'value': entry['value']})


@settings_bp.route('/api/kv/<namespace>/<key>', methods=['DELETE'])
@login_required
def api_kv_delete(namespace, key):
    error = _check_namespace(namespace, write=True)
    if error:
        return error
    if _kv_repo.delete(namespace, key, user_id=_owner(namespace)):
        return jsonify({'success': True})
    return error_response('Key not found', 404)
