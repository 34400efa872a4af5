"""Employee directory.

Features:
- Departments with headcount
- Employees with scope-based visibility
- Reporting hierarchy and org chart
"""
from flask import Blueprint

directory_bp = Blueprint('directory', __name__)

from . import routes  # noqa: E402, F401
