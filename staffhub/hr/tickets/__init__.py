"""Onboarding, offboarding and support tickets."""
from flask import Blueprint

tickets_bp = Blueprint('tickets', __name__)

from . import routes  # noqa: E402, F401
