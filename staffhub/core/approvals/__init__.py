"""Approval engine module.

Multi-step sign-off for entities owned by other modules. Offboarding is
the only flow seeded today; approvers work through /approvals/api.
"""
from flask import Blueprint

approvals_bp = Blueprint('approvals', __name__)

from . import routes  # noqa: E402, F401
