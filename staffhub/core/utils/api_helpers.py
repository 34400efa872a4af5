"""Helpers shared by every blueprint: access decorators, JSON errors, request parsing."""
import time
import logging
from collections import defaultdict, deque
from functools import wraps

from flask import jsonify, request
from flask_login import current_user

logger = logging.getLogger('staffhub.api')


def error_response(message, status_code=400):
    return jsonify({'success': False, 'error': message}), status_code


# ============== Access ==============

def _guard(allowed, denial):
    """Decorator factory. 401 for anonymous users, 403 with `denial` when `allowed(user)` is false."""
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            if not current_user.is_authenticated:
                return error_response('Authentication required', 401)
            if not allowed(current_user):
                return error_response(denial, 403)
            return f(*args, **kwargs)
        return decorated
    return decorator


admin_required = _guard(lambda user: getattr(user, 'is_admin', False), 'Permission denied')


def permission_required(resource: str, action: str):
    """Require `resource.action` from one of the user's roles; admins always pass.

        @permission_required('tickets', 'update')
        def api_update_ticket(ticket_id): ...
    """
    return _guard(lambda user: user.has_permission(resource, action),
                  f'Permission denied: {resource}.{action}')


# ============== Requests ==============

def get_json_or_error():
    """(data, None) for a JSON body, else (None, 400 response)."""
    data = request.get_json(silent=True)
    if data is None:
        return None, error_response('Invalid or missing JSON body', 400)
    return data, None


def int_arg(name, default=None):
    """Query-string integer; missing or malformed values give `default`."""
    raw = request.args.get(name)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# ============== Responses ==============

def safe_error_response(e, status_code=500):
    """ValueError and KeyError messages are user-facing (400); anything else is
    logged with its traceback and reported generically.
    """
    if isinstance(e, (ValueError, KeyError)):
        return error_response(str(e).strip("'"), 400)
    logger.exception('Unhandled error in API route')
    return error_response('An internal error occurred', status_code)


def handle_api_errors(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except Exception as e:
            return safe_error_response(e)
    return decorated


def service_response(result, **extra):
    """JSON for a ServiceResult. Failures without an error status become 400."""
    if not result.success:
        status = result.status_code if (result.status_code or 0) >= 400 else 400
        return error_response(result.error, status)
    body = {'success': True}
    if result.data is not None:
        body['data'] = result.data
    body.update(extra)
    return jsonify(body), 200


# ============== Throttling ==============

class RateLimiter:
    """Sliding-window request counter kept in process memory (one per worker)."""

    def __init__(self):
        self._hits = defaultdict(deque)

    def is_allowed(self, key, max_requests=10, window_seconds=60):
        """(True, 0) and count the hit, or (False, seconds until a slot frees up)."""
        now = time.time()
        hits = self._hits[key]
        while hits and hits[0] <= now - window_seconds:
            hits.popleft()
        if len(hits) >= max_requests:
            return False, max(1, int(hits[0] + window_seconds - now) + 1)
        hits.append(now)
        return True, 0
