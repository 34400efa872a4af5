"""StaffHub Core Settings Module.

Namespaced key-value store for user preferences, app configuration,
announcements, session data and short-lived cache entries.
"""
from flask import Blueprint

settings_bp = Blueprint('settings', __name__)

from . import routes  # noqa: E402, F401
