"""Change Request Service - who may propose and decide profile changes."""
import logging
from typing import Dict, Any

from core.services import ServiceResult
from core.approvals.engine import InvalidStateError
from core.auth.repositories import UserRepository
from core.notifications.notify import notify_user
from hr.directory.repositories import EmployeeRepository, EDITABLE_FIELDS
from hr.directory.services import DirectoryService
from ..repositories import ChangeRequestRepository

logger = logging.getLogger('staffhub.hr.change_requests.service')

DECISION_STATUSES = ('approved', 'rejected')


def validate_payload(payload):
    """Raise ValueError unless `payload` is a non-empty map of editable fields."""
    if not isinstance(payload, dict) or not payload:
        raise ValueError('payload must be a non-empty object')
    unknown = sorted(set(payload) - set(EDITABLE_FIELDS))
    if unknown:
        raise ValueError(f"Fields cannot be changed: {', '.join(unknown)}")
    for required in ('first_name', 'last_name', 'email'):
        if required in payload and not str(payload[required] or '').strip():
            raise ValueError(f'{required} cannot be empty')


class ChangeRequestService:

    def __init__(self):
        self.change_request_repo = ChangeRequestRepository()
        self.employee_repo = EmployeeRepository()
        self.directory_service = DirectoryService()
        self.user_repo = UserRepository()

    def create(self, user, target_employee_id: int, payload: Dict[str, Any],
               comment: str = None) -> ServiceResult:
        if not user.employee_id:
            return ServiceResult.fail('Your account is not linked to an employee', 403)
        target = self.employee_repo.get_by_id(target_employee_id)
        if not target:
            return ServiceResult.fail('Employee not found', 404)
        if not (user.is_admin or target['id'] == user.employee_id
                or target.get('manager_id') == user.employee_id):
            return ServiceResult.fail('Permission denied', 403)
        try:
            validate_payload(payload)
            if 'manager_id' in payload:
                self.directory_service.validate_manager(target['id'], payload['manager_id'])
        except ValueError as e:
            return ServiceResult.fail(str(e))

        request_id = self.change_request_repo.create(
            target['id'], user.employee_id, payload, comment)
        logger.info(f'Change request #{request_id} for employee {target["id"]} '
                    f'by employee {user.employee_id}')
        return ServiceResult.ok({'id': request_id})

    def list_requests(self, user, mine: bool = False) -> ServiceResult:
        if mine:
            if not user.employee_id:
                return ServiceResult.ok([])
            return ServiceResult.ok(self.change_request_repo.get_for_requester(user.employee_id))
        if user.is_admin:
            return ServiceResult.ok(self.change_request_repo.get_pending())
        if user.employee_id and self.employee_repo.get_direct_reports(user.employee_id):
            return ServiceResult.ok(self.change_request_repo.get_pending(user.employee_id))
        return ServiceResult.fail('Only managers and administrators can review change requests', 403)

    def decide(self, user, request_id: int, status: str, comment: str = None) -> ServiceResult:
        if status not in DECISION_STATUSES:
            return ServiceResult.fail("status must be 'approved' or 'rejected'", 422)
        request = self.change_request_repo.get_by_id(request_id)
        if not request:
            return ServiceResult.fail('Change request not found', 404)
        is_manager = (user.employee_id is not None
                      and request.get('target_manager_id') == user.employee_id)
        if not (user.is_admin or is_manager):
            return ServiceResult.fail('Only the employee\'s manager or an admin can decide', 403)
        if request['status'] != 'pending':
            return ServiceResult.fail(f"Change request is already {request['status']}", 409)

        try:
            if status == 'approved':
                payload = request.get('payload') or {}
                if 'manager_id' in payload:
                    self.directory_service.validate_manager(
                        request['target_employee_id'], payload['manager_id'])
                updated = self.change_request_repo.approve(request_id, user.employee_id, comment)
            else:
                updated = self.change_request_repo.reject(request_id, user.employee_id, comment)
        except InvalidStateError as e:
            return ServiceResult.fail(str(e), 409)
        except ValueError as e:
            return ServiceResult.fail(str(e))

        self._notify_requester(request, status, comment)
        return ServiceResult.ok(updated)

    def _notify_requester(self, request, status, comment):
        account = self.user_repo.get_by_employee_id(request['requester_employee_id'])
        if not account:
            return
        name = f"{request['target_first_name']} {request['target_last_name']}"
        notify_user(
            account['id'],
            f'Change request {status}',
            message=f'Your change request for {name} was {status}.'
                    + (f' Comment: {comment}' if comment else ''),
            link=f"/api/change-requests/{request['id']}",
            entity_type='change_request', entity_id=request['id'],
            type='success' if status == 'approved' else 'warning',
        )
