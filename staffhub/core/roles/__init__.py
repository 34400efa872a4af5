"""Role and permission administration.

Roles are granted to employees (not user accounts); a user's permissions
come from the roles of the employee record linked to the account.
"""
from flask import Blueprint

roles_bp = Blueprint('roles', __name__)

from . import routes  # noqa: E402, F401
