"""Activity feed and row-level audit log."""
from flask import Blueprint

activity_bp = Blueprint('activity', __name__)

from . import routes  # noqa: E402, F401
