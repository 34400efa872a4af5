"""Ticket routes."""
from flask import jsonify, request
from flask_login import login_required, current_user

from . import tickets_bp
from .repositories import TicketRepository
from .services import TicketService
from core.utils.api_helpers import (
    error_response, get_json_or_error, handle_api_errors, int_arg,
    permission_required, service_response,
)

_ticket_repo = TicketRepository()
_ticket_service = TicketService()


def _can_see(ticket):
    if current_user.has_permission('tickets', 'view'):
        return True
    return current_user.employee_id in (ticket['requestor_id'], ticket.get('assignee_id'))


@tickets_bp.route('/api/tickets', methods=['GET'])
@login_required
def api_get_tickets():
    filters = {
        'status': request.args.get('status') or None,
        'type': request.args.get('type') or None,
        'priority': request.args.get('priority') or None,
        'requestor_id': int_arg('requestor_id'),
        'assignee_id': int_arg('assignee_id'),
    }
    if not current_user.has_permission('tickets', 'view'):
        if not current_user.employee_id:
            return jsonify({'tickets': []})
        tickets = [t for t in _ticket_repo.get_for_employee(current_user.employee_id)
                   if all(v is None or t.get(k) == v for k, v in filters.items())]
        return jsonify({'tickets': tickets})
    return jsonify({'tickets': _ticket_repo.get_all(**filters)})


@tickets_bp.route('/api/tickets/mine', methods=['GET'])
@login_required
def api_get_my_tickets():
    if not current_user.employee_id:
        return jsonify({'tickets': []})
    return jsonify({'tickets': _ticket_repo.get_for_employee(current_user.employee_id)})


@tickets_bp.route('/api/tickets/<int:ticket_id>', methods=['GET'])
@login_required
def api_get_ticket(ticket_id):
    ticket = _ticket_repo.get_by_id(ticket_id)
    if not ticket:
        return error_response('Ticket not found', 404)
    if not _can_see(ticket):
        return error_response('Permission denied', 403)
    return jsonify(ticket)


@tickets_bp.route('/api/tickets', methods=['POST'])
@permission_required('tickets', 'create')
@handle_api_errors
def api_create_ticket():
    data, error = get_json_or_error()
    if error:
        return error
    requestor_id = current_user.employee_id
    if data.get('requestor_id') and data['requestor_id'] != requestor_id:
        if not current_user.has_permission('tickets', 'update'):
            return error_response('You can only open tickets for yourself', 403)
        requestor_id = data['requestor_id']
    result = _ticket_service.create_ticket(data, requestor_id)
    if not result.success:
        return service_response(result)
    return jsonify({'success': True, 'id': result.data['id']}), 201


@tickets_bp.route('/api/tickets/<int:ticket_id>', methods=['PUT', 'PATCH'])
@login_required
@handle_api_errors
def api_update_ticket(ticket_id):
    """Update a ticket. Assignees may work their own tickets without `tickets.update`."""
    data, error = get_json_or_error()
    if error:
        return error
    ticket = _ticket_repo.get_by_id(ticket_id)
    if not ticket:
        return error_response('Ticket not found', 404)
    if (not current_user.has_permission('tickets', 'update')
            and (current_user.employee_id is None
                 or ticket.get('assignee_id') != current_user.employee_id)):
        return error_response('Permission denied: tickets.update', 403)
    return service_response(
        _ticket_service.update_ticket(ticket_id, data, acting_employee_id=current_user.employee_id))


@tickets_bp.route('/api/tickets/<int:ticket_id>/checklist/<int:index>', methods=['PATCH'])
@login_required
@handle_api_errors
def api_update_checklist_item(ticket_id, index):
    data, error = get_json_or_error()
    if error:
        return error
    if 'completed' not in data:
        return error_response('completed is required')
    ticket = _ticket_repo.get_by_id(ticket_id)
    if not ticket:
        return error_response('Ticket not found', 404)
    if (not current_user.has_permission('tickets', 'update')
            and (current_user.employee_id is None
                 or ticket.get('assignee_id') != current_user.employee_id)):
        return error_response('Permission denied: tickets.update', 403)
    return service_response(
        _ticket_service.update_checklist_item(ticket_id, index, bool(data['completed'])))
