"""Dashboard and report routes."""
from flask import jsonify, request

from . import reports_bp
from . import aggregations
from core.utils.api_helpers import int_arg, permission_required
from hr.access.repositories import SystemRepository, AccessRepository
from hr.activity.repositories import ActivityRepository
from hr.directory.repositories import EmployeeRepository
from hr.tickets.repositories import TicketRepository

_employee_repo = EmployeeRepository()
_ticket_repo = TicketRepository()
_system_repo = SystemRepository()
_access_repo = AccessRepository()
_activity_repo = ActivityRepository()


@reports_bp.route('/api/dashboard/stats', methods=['GET'])
@permission_required('reports', 'view')
def api_dashboard_stats():
    return jsonify(aggregations.dashboard_stats(
        _employee_repo.get_all(), _ticket_repo.get_all(), _access_repo.get_all()))


@reports_bp.route('/api/dashboard/access-stats', methods=['GET'])
@permission_required('reports', 'view')
def api_dashboard_access_stats():
    return jsonify({'systems': aggregations.system_access_stats(
        _system_repo.get_all(), _access_repo.get_all())})


@reports_bp.route('/api/dashboard/recent-activities', methods=['GET'])
@permission_required('reports', 'view')
def api_dashboard_recent_activities():
    limit = min(max(int_arg('limit', 10), 1), 100)
    return jsonify({'activities': _activity_repo.get_recent(limit)})


@reports_bp.route('/api/reports/summary', methods=['GET'])
@permission_required('reports', 'view')
def api_reports_summary():
    employees = _employee_repo.get_all()
    tickets = _ticket_repo.get_all()
    accesses = _access_repo.get_all()
    return jsonify({
        'employeesByDepartment': aggregations.employees_by_department(employees),
        'ticketsByStatus': aggregations.tickets_by_status(tickets),
        'ticketsByType': aggregations.tickets_by_type(tickets),
        'accessByLevel': aggregations.access_by_level(accesses),
        'accessBySystem': aggregations.access_by_system(accesses),
    })


@reports_bp.route('/api/reports/tickets', methods=['GET'])
@permission_required('reports', 'view')
def api_reports_tickets():
    filters = {
        'status': request.args.get('status') or None,
        'type': request.args.get('type') or None,
        'priority': request.args.get('priority') or None,
        'assignee_id': int_arg('assignee_id'),
        'requestor_id': int_arg('requestor_id'),
        'start_date': request.args.get('start_date') or None,
        'end_date': request.args.get('end_date') or None,
    }
    return jsonify(aggregations.ticket_report(_ticket_repo.get_all(), filters))
