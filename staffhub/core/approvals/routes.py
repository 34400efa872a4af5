"""Approval routes - the approver's queue and decisions on individual requests.

Requests are opened by the modules that need sign-off (offboarding), so
there is no generic submit endpoint.
"""
from flask import jsonify
from flask_login import login_required, current_user

from . import approvals_bp
from .engine import (
    ApprovalEngine, ApprovalError, NoMatchingFlowError, AlreadyPendingError,
    NotAuthorizedError, AlreadyDecidedError, InvalidStateError, DECISIONS,
)
from core.utils.api_helpers import error_response, get_json_or_error, handle_api_errors

_engine = ApprovalEngine()

_ERROR_STATUS = (
    (NotAuthorizedError, 403),
    (NoMatchingFlowError, 404),
    (AlreadyPendingError, 409),
    (AlreadyDecidedError, 409),
    (InvalidStateError, 409),
)

_NEEDS_COMMENT = ('rejected', 'returned')


def approval_error_status(error):
    """HTTP status for an ApprovalError."""
    return next((status for cls, status in _ERROR_STATUS if isinstance(error, cls)), 400)


def _load_for(request_id, requester_only=False):
    """(request, error). Admins and the requester always pass; approvers only when reading."""
    req = _engine.requests.get_by_id(request_id)
    if not req:
        return None, error_response('Approval request not found', 404)
    if current_user.is_admin or req['requested_by'] == current_user.id:
        return req, None
    if not requester_only and (
            current_user.id in _engine.get_current_step_approvers(request_id)
            or any(d['decided_by'] == current_user.id
                   for d in _engine.decisions.for_request(request_id))):
        return req, None
    return None, error_response('Permission denied', 403)


def _run(action, *args, **kwargs):
    try:
        return jsonify({'success': True, 'request': action(*args, **kwargs)})
    except ApprovalError as e:
        return error_response(str(e), approval_error_status(e))


@approvals_bp.route('/api/requests/<int:request_id>', methods=['GET'])
@login_required
def api_get_request(request_id):
    req, error = _load_for(request_id)
    if error:
        return error
    req['decisions'] = _engine.decisions.for_request(request_id)
    req['audit'] = _engine.audit.for_request(request_id)
    req['steps'] = _engine.flows.steps(req['flow_id'])
    return jsonify(req)


@approvals_bp.route('/api/requests/<int:request_id>/decide', methods=['POST'])
@login_required
@handle_api_errors
def api_decide(request_id):
    data, error = get_json_or_error()
    if error:
        return error
    decision = (data.get('decision') or '').strip()
    comment = (data.get('comment') or '').strip() or None
    if decision not in DECISIONS:
        return error_response(f"decision must be one of: {', '.join(DECISIONS)}", 422)
    if decision in _NEEDS_COMMENT and not comment:
        return error_response(f'A comment is required when the decision is {decision}', 422)
    return _run(_engine.decide, request_id, decision, current_user.id, comment=comment)


@approvals_bp.route('/api/requests/<int:request_id>/cancel', methods=['POST'])
@login_required
@handle_api_errors
def api_cancel_request(request_id):
    _, error = _load_for(request_id, requester_only=True)
    if error:
        return error
    data, error = get_json_or_error()
    if error:
        return error
    return _run(_engine.cancel, request_id, current_user.id, reason=data.get('reason'))


@approvals_bp.route('/api/requests/<int:request_id>/resubmit', methods=['POST'])
@login_required
@handle_api_errors
def api_resubmit_request(request_id):
    _, error = _load_for(request_id, requester_only=True)
    if error:
        return error
    data, error = get_json_or_error()
    if error:
        return error
    return _run(_engine.resubmit, request_id, current_user.id, context=data.get('context'))


@approvals_bp.route('/api/my-queue', methods=['GET'])
@login_required
def api_my_queue():
    return jsonify({'queue': _engine.get_pending_for_user(current_user.id)})


@approvals_bp.route('/api/my-queue/count', methods=['GET'])
@login_required
def api_my_queue_count():
    return jsonify({'count': _engine.get_queue_count(current_user.id)})


@approvals_bp.route('/api/my-requests', methods=['GET'])
@login_required
def api_my_requests():
    return jsonify({'requests': _engine.requests.requested_by(current_user.id)})
