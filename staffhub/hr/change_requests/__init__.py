"""Employee profile change requests with manager approval."""
from flask import Blueprint

change_requests_bp = Blueprint('change_requests', __name__)

from . import routes  # noqa: E402, F401
