"""StaffHub Flask application.

Importing this module builds the app: logging, session hardening,
Flask-Login, every blueprint and the approval hooks. Outside tests
(TESTING unset) it also bootstraps the schema and starts the scheduler.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import time
from datetime import timedelta

from flask import Flask, request, jsonify

from core.utils.logging_config import setup_logging, get_logger
setup_logging(level=os.environ.get('LOG_LEVEL', 'INFO'))
app_logger = get_logger('staffhub.app')

from flask_compress import Compress
from flask_login import LoginManager
from core.auth.repositories import UserRepository
from core.auth.routes import load_user_with_permissions
from core.utils.api_helpers import error_response
from database import ping_db

USER_CACHE_TTL = 60
DEV_SECRET = 'dev-secret-key-for-local-only'

_user_repo = UserRepository()
# user id -> (User, loaded_at); per worker
_user_cache = {}


def _secret_key():
    key = os.environ.get('FLASK_SECRET_KEY') or os.environ.get('SECRET_KEY')
    if key:
        return key
    if os.environ.get('FLASK_DEBUG', 'false').lower() != 'true':
        raise RuntimeError('FLASK_SECRET_KEY is not set')
    app_logger.warning('FLASK_SECRET_KEY not set; using the development key')
    return DEV_SECRET


app = Flask(__name__)
app.secret_key = _secret_key()
app.config.update(
    REMEMBER_COOKIE_DURATION=timedelta(days=30),
    REMEMBER_COOKIE_SECURE=True,
    REMEMBER_COOKIE_HTTPONLY=True,
    REMEMBER_COOKIE_SAMESITE='Lax',
    SESSION_COOKIE_SECURE=True,
    SESSION_COOKIE_HTTPONLY=True,
    SESSION_COOKIE_SAMESITE='Lax',
)
Compress(app)

login_manager = LoginManager(app)


@login_manager.unauthorized_handler
def unauthorized():
    return error_response('Authentication required', 401)


@login_manager.user_loader
def load_user(user_id):
    """Session user, reloaded from the database at most every USER_CACHE_TTL seconds."""
    uid = int(user_id)
    now = time.time()
    cached = _user_cache.get(uid)
    if cached and now - cached[1] < USER_CACHE_TTL:
        return cached[0]

    row = _user_repo.get_by_id(uid)
    if not row or not row.get('is_active', True):
        _user_cache.pop(uid, None)
        return None
    user = load_user_with_permissions(row)
    _user_cache[uid] = (user, now)
    return user


# ============== Blueprints ==============

from core.auth import auth_bp
from core.roles import roles_bp
from core.notifications import notifications_bp
from core.settings import settings_bp
from core.approvals import approvals_bp
from hr import hr_bp

for blueprint in (auth_bp, roles_bp, notifications_bp, settings_bp, hr_bp):
    app.register_blueprint(blueprint)
app.register_blueprint(approvals_bp, url_prefix='/approvals')

from core.approvals.handlers import register_approval_hooks
from hr.offboarding.handlers import register_offboarding_hooks
register_approval_hooks()
register_offboarding_hooks()


# ============== Errors and headers ==============

@app.errorhandler(404)
def handle_404(e):
    return error_response('Not found', 404)


@app.errorhandler(405)
def handle_405(e):
    return error_response('Method not allowed', 405)


@app.errorhandler(500)
def handle_500(e):
    app_logger.exception('Unhandled 500 error')
    return error_response('An internal error occurred', 500)


@app.after_request
def add_cache_headers(response):
    """JSON is private and never cached; the health check is never cached at all."""
    if request.path == '/health':
        response.headers['Cache-Control'] = 'no-cache'
    elif response.content_type and 'application/json' in response.content_type:
        response.headers.setdefault('Cache-Control', 'private, no-store')
    return response


@app.route('/health')
def health_check():
    try:
        database_ok = ping_db()
    except Exception as e:
        app_logger.error(f'Health check could not reach the database: {e}')
        database_ok = False
    body = {
        'status': 'healthy' if database_ok else 'unhealthy',
        'checks': {'database': database_ok},
        'service': 'staffhub',
    }
    return jsonify(body), 200 if database_ok else 503


# ============== Startup ==============

if not os.environ.get('TESTING'):
    try:
        from database import init_db
        init_db()
    except Exception as e:
        app_logger.error(f'Database initialization failed: {e}')
    try:
        from tasks.cleanup import start_scheduler
        start_scheduler()
    except Exception as e:
        app_logger.warning(f'Background scheduler not started: {e}')

app_logger.info(f'StaffHub ready, {len(list(app.url_map.iter_rules()))} routes')


if __name__ == '__main__':
    app.run(debug=os.environ.get('FLASK_DEBUG', 'false').lower() == 'true',
            host='0.0.0.0', port=int(os.environ.get('PORT', 5000)))
