"""Auth module routes: sessions, own password, presence, user admin and the event log."""
from flask import jsonify, request
from flask_login import login_required, login_user, logout_user, current_user

from . import auth_bp
from .models import User
from .repositories import UserRepository, EventRepository
from core.roles.repositories import PermissionRepository
from core.utils.api_helpers import (
    admin_required, error_response, safe_error_response, get_json_or_error,
    int_arg, RateLimiter,
)
from core.utils.logging_config import get_logger

logger = get_logger('staffhub.core.auth.routes')

MIN_PASSWORD_LENGTH = 8
LOGIN_ATTEMPTS = 10
LOGIN_WINDOW_SECONDS = 300
ONLINE_MINUTES = 3

# Columns an admin listing may expose; password_hash never leaves the repository
_ACCOUNT_FIELDS = ('id', 'email', 'name', 'is_active', 'is_admin', 'employee_id',
                   'department_id', 'last_login', 'last_seen', 'created_at')

_user_repo = UserRepository()
_event_repo = EventRepository()
_perm_repo = PermissionRepository()
_auth_limiter = RateLimiter()


def load_user_with_permissions(user_data):
    """User carrying the permission map of its linked employee (admins need none)."""
    grants = {}
    if user_data.get('employee_id') and not user_data.get('is_admin'):
        grants = _perm_repo.get_permission_map(user_data['employee_id'])
    return User(user_data, grants)


def _record(event_type, description=None, **entity):
    """Append to the user event log. A logging failure never fails the request."""
    signed_in = current_user.is_authenticated
    try:
        _event_repo.log_event(
            event_type=event_type,
            event_description=description,
            user_id=current_user.id if signed_in else None,
            user_email=current_user.email if signed_in else None,
            ip_address=request.remote_addr,
            user_agent=(request.headers.get('User-Agent') or '')[:500],
            **entity,
        )
    except Exception as e:
        logger.error(f'Event log write failed for {event_type}: {e}')


def _too_short(password, label='Password'):
    if len(password or '') < MIN_PASSWORD_LENGTH:
        return error_response(f'{label} must be at least {MIN_PASSWORD_LENGTH} characters')
    return None


def _account(row):
    return {field: row.get(field) for field in _ACCOUNT_FIELDS}


# ============== Sessions ==============

@auth_bp.route('/login', methods=['POST'])
def login():
    """Email and password from a JSON or form body. Throttled per client address."""
    allowed, retry_after = _auth_limiter.is_allowed(
        f'login:{request.remote_addr}', max_requests=LOGIN_ATTEMPTS,
        window_seconds=LOGIN_WINDOW_SECONDS)
    if not allowed:
        response, status = error_response(
            f'Too many login attempts. Try again in {retry_after} seconds.', 429)
        response.headers['Retry-After'] = str(retry_after)
        return response, status

    body = request.get_json(silent=True) or request.form
    email = (body.get('email') or '').strip()
    password = body.get('password') or ''
    if not (email and password):
        return error_response('Email and password are required')

    account = _user_repo.authenticate(email, password)
    if account is None:
        _record('login_failed', f'Failed login attempt for {email}')
        return error_response('Invalid email or password', 401)

    user = load_user_with_permissions(account)
    login_user(user, remember=bool(body.get('remember')))
    _user_repo.update_last_login(user.id)
    _record('login', f'{email} signed in')
    return jsonify({'success': True, 'user': {'id': user.id, 'name': user.name, 'email': user.email}})


@auth_bp.route('/logout')
@login_required
def logout():
    _record('logout', f'{current_user.email} signed out')
    logout_user()
    return jsonify({'success': True})


@auth_bp.route('/api/auth/current-user')
def api_current_user():
    if not current_user.is_authenticated:
        return jsonify({'authenticated': False})
    me = current_user
    return jsonify({'authenticated': True, 'user': {
        'id': me.id, 'name': me.name, 'email': me.email, 'is_admin': me.is_admin,
        'employee_id': me.employee_id, 'department_id': me.department_id,
        'permissions': me.permission_keys(),
    }})


@auth_bp.route('/api/auth/change-password', methods=['POST'])
@login_required
def api_change_password():
    data, error = get_json_or_error()
    if error:
        return error
    old, new = data.get('current_password') or '', data.get('new_password') or ''
    if not (old and new):
        return error_response('Both current and new passwords are required')
    error = _too_short(new, 'New password')
    if error:
        return error
    if not _user_repo.authenticate(current_user.email, old):
        return error_response('Current password is incorrect')

    _user_repo.update_password(current_user.id, new)
    _record('password_changed', 'Password changed by its owner')
    return jsonify({'success': True, 'message': 'Password changed'})


# ============== Presence ==============

@auth_bp.route('/api/heartbeat', methods=['POST'])
@login_required
def api_heartbeat():
    _user_repo.update_last_seen(current_user.id)
    return jsonify({'success': True})


@auth_bp.route('/api/online-users')
@login_required
def api_online_users():
    return jsonify(_user_repo.get_online_count(minutes=ONLINE_MINUTES))


# ============== User administration ==============

@auth_bp.route('/api/admin/users', methods=['GET'])
@admin_required
def api_get_users():
    return jsonify({'users': [_account(row) for row in _user_repo.get_all()]})


@auth_bp.route('/api/admin/users/<int:user_id>', methods=['GET'])
@admin_required
def api_get_user(user_id):
    row = _user_repo.get_by_id(user_id)
    return jsonify(_account(row)) if row else error_response('User not found', 404)


@auth_bp.route('/api/admin/users', methods=['POST'])
@admin_required
def api_create_user():
    data, error = get_json_or_error()
    if error:
        return error
    name = (data.get('name') or '').strip()
    email = (data.get('email') or '').strip()
    if not (name and email):
        return error_response('Name and email are required')
    error = _too_short(data.get('password'))
    if error:
        return error
    if _user_repo.get_by_email(email):
        return error_response(f"User with email '{email}' already exists", 409)

    try:
        new_id = _user_repo.save(
            name=name, email=email, password=data['password'],
            is_active=data.get('is_active', True),
            is_admin=data.get('is_admin', False),
            employee_id=data.get('employee_id'),
        )
    except ValueError as e:
        return error_response(str(e), 409)
    except Exception as e:
        return safe_error_response(e)
    _record('user_created', f'Account {email} created', entity_type='user', entity_id=new_id)
    return jsonify({'success': True, 'id': new_id}), 201


@auth_bp.route('/api/admin/users/<int:user_id>', methods=['PUT'])
@admin_required
def api_update_user(user_id):
    data, error = get_json_or_error()
    if error:
        return error
    unlink = 'employee_id' in data and data['employee_id'] is None
    try:
        found = _user_repo.update(
            user_id=user_id,
            name=(data.get('name') or '').strip() or None,
            email=(data.get('email') or '').strip() or None,
            is_active=data.get('is_active'),
            is_admin=data.get('is_admin'),
            employee_id=data.get('employee_id'),
            clear_employee=unlink,
        )
    except ValueError as e:
        return error_response(str(e), 409)
    except Exception as e:
        return safe_error_response(e)
    if not found:
        return error_response('User not found', 404)
    _record('user_updated', f'Account #{user_id} updated', entity_type='user',
            entity_id=user_id, details={'fields': sorted(data)})
    return jsonify({'success': True})


@auth_bp.route('/api/admin/users/<int:user_id>/password', methods=['POST'])
@admin_required
def api_set_user_password(user_id):
    data, error = get_json_or_error()
    if error:
        return error
    error = _too_short(data.get('password'))
    if error:
        return error
    account = _user_repo.get_by_id(user_id)
    if not account:
        return error_response('User not found', 404)

    _user_repo.update_password(user_id, data['password'])
    _record('admin_password_reset', f"Password reset for {account['email']}",
            entity_type='user', entity_id=user_id)
    return jsonify({'success': True, 'message': f"Password set for {account['name']}"})


@auth_bp.route('/api/admin/users/<int:user_id>', methods=['DELETE'])
@admin_required
def api_delete_user(user_id):
    if user_id == current_user.id:
        return error_response('You cannot delete your own account')
    account = _user_repo.get_by_id(user_id)
    if not account:
        return error_response('User not found', 404)

    _user_repo.delete(user_id)
    _record('user_deleted', f"Account {account['email']} deleted", entity_type='user', entity_id=user_id)
    if account.get('employee_id'):
        from hr.activity.repositories import ActivityRepository
        try:
            ActivityRepository().log_activity(
                account['employee_id'], 'user_deletion',
                f"User account {account['email']} deleted",
                metadata={'user_id': user_id, 'deleted_by': current_user.id},
            )
        except Exception as e:
            logger.error(f'Activity entry for deleted account #{user_id} failed: {e}')
    return jsonify({'success': True})


# ============== Event log ==============

@auth_bp.route('/api/events', methods=['GET'])
@admin_required
def api_get_events():
    args = request.args
    return jsonify(_event_repo.get_events(
        limit=min(int_arg('limit', 100), 500),
        offset=int_arg('offset', 0),
        user_id=int_arg('user_id'),
        event_type=args.get('event_type') or None,
        entity_type=args.get('entity_type') or None,
        start_date=args.get('start_date') or None,
        end_date=args.get('end_date') or None,
    ))


@auth_bp.route('/api/events/types', methods=['GET'])
@admin_required
def api_get_event_types():
    return jsonify(_event_repo.get_event_types())
