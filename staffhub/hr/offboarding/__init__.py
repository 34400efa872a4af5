"""Employee offboarding: HR sign-off followed by IT access removal.

Runs on the generic approval engine (flow slug `offboarding`); the side
effects on employees, tickets and system access live in handlers.py.
"""
from flask import Blueprint

offboarding_bp = Blueprint('offboarding', __name__)

from . import routes  # noqa: E402, F401
