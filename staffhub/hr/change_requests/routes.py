"""Change request routes."""
from flask import jsonify, request
from flask_login import login_required, current_user

from . import change_requests_bp
from .repositories import ChangeRequestRepository
from .services import ChangeRequestService
from core.utils.api_helpers import (
    error_response, get_json_or_error, handle_api_errors, service_response,
)

_change_request_repo = ChangeRequestRepository()
_change_request_service = ChangeRequestService()


@change_requests_bp.route('/api/employees/<int:employee_id>/change-requests', methods=['POST'])
@login_required
@handle_api_errors
def api_create_change_request(employee_id):
    data, error = get_json_or_error()
    if error:
        return error
    result = _change_request_service.create(
        current_user, employee_id, data.get('payload'), comment=data.get('comment'))
    if not result.success:
        return service_response(result)
    return jsonify({'success': True, 'id': result.data['id']}), 201


@change_requests_bp.route('/api/change-requests', methods=['GET'])
@login_required
def api_get_change_requests():
    mine = request.args.get('mine') in ('1', 'true')
    result = _change_request_service.list_requests(current_user, mine=mine)
    if not result.success:
        return service_response(result)
    return jsonify({'change_requests': result.data})


@change_requests_bp.route('/api/change-requests/<int:request_id>', methods=['GET'])
@login_required
def api_get_change_request(request_id):
    change_request = _change_request_repo.get_by_id(request_id)
    if not change_request:
        return error_response('Change request not found', 404)
    involved = current_user.employee_id in (
        change_request['target_employee_id'], change_request['requester_employee_id'],
        change_request.get('target_manager_id'))
    if not (current_user.is_admin or (current_user.employee_id and involved)):
        return error_response('Permission denied', 403)
    return jsonify(change_request)


@change_requests_bp.route('/api/change-requests/<int:request_id>', methods=['PATCH'])
@login_required
@handle_api_errors
def api_decide_change_request(request_id):
    data, error = get_json_or_error()
    if error:
        return error
    return service_response(_change_request_service.decide(
        current_user, request_id, data.get('status'), comment=data.get('comment')))
