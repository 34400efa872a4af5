"""StaffHub HR Section.

Apps registered under the section blueprint:
- directory: departments, employees, reporting hierarchy
- access: systems and system-access requests
- tickets: onboarding/offboarding/support tickets
- activity: activity feed and audit log
- change_requests: employee profile changes with manager approval
- offboarding: HR then IT offboarding approval workflow
- reports: dashboards and aggregated reports
"""
from flask import Blueprint

hr_bp = Blueprint('hr', __name__)

from .directory import directory_bp  # noqa: E402
from .access import access_bp  # noqa: E402
from .tickets import tickets_bp  # noqa: E402
from .activity import activity_bp  # noqa: E402
from .change_requests import change_requests_bp  # noqa: E402
from .offboarding import offboarding_bp  # noqa: E402
from .reports import reports_bp  # noqa: E402

hr_bp.register_blueprint(directory_bp)
hr_bp.register_blueprint(access_bp)
hr_bp.register_blueprint(tickets_bp)
hr_bp.register_blueprint(activity_bp)
hr_bp.register_blueprint(change_requests_bp)
hr_bp.register_blueprint(offboarding_bp)
hr_bp.register_blueprint(reports_bp)
