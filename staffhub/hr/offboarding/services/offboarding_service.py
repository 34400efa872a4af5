"""Offboarding Service.

Ticket metadata carries the workflow state:

    {
        "employee_id": 12,
        "last_day": "2026-11-30",
        "reason": "Resignation",
        "previous_status": "active",
        "approvals": {"hr": "pending", "it": "pending"},
        "approval_details": {"hr": {"decided_by": 3, "decided_at": "...", ...}},
        "systems_to_revoke": [{"access_id": 4, "system_id": 2, "system_name": "CRM"}],
        "outcome": "approved"
    }
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from core.approvals.engine import ApprovalEngine, AlreadyPendingError
from core.auth.repositories import UserRepository
from hr.access.services import AccessService
from hr.access.repositories import AccessRepository
from hr.activity.repositories import ActivityRepository
from hr.directory.repositories import EmployeeRepository
from hr.tickets.repositories import TicketRepository

logger = logging.getLogger('staffhub.hr.offboarding.service')

ENTITY_TYPE = 'offboarding'
STAGES = ('hr', 'it')
_OFFBOARDABLE = ('active', 'onboarding')


def stage_key(step_name):
    """'HR Approval' -> 'hr'."""
    return (step_name or '').strip().split(' ')[0].lower()


def _now_iso():
    return datetime.now(timezone.utc).isoformat()


class OffboardingService:

    def __init__(self):
        self.employee_repo = EmployeeRepository()
        self.ticket_repo = TicketRepository()
        self.access_repo = AccessRepository()
        self.access_service = AccessService()
        self.activity_repo = ActivityRepository()
        self.user_repo = UserRepository()
        self.engine = ApprovalEngine()

    def start_offboarding(self, employee_id: int, requested_by_user, last_day=None,
                          reason: str = None, notes: str = None) -> Dict[str, Any]:
        """Open the ticket, flag the employee and submit for approval.

        Raises ValueError when the employee cannot be offboarded and
        AlreadyPendingError when an offboarding is already open. If the
        submission fails for any reason the ticket is deleted and the
        employee's status restored before the error propagates.
        """
        employee = self.employee_repo.get_by_id(employee_id)
        if not employee:
            raise ValueError('Employee not found')
        if employee['status'] not in _OFFBOARDABLE:
            raise ValueError(f"Cannot offboard an employee with status '{employee['status']}'")
        existing = self.ticket_repo.get_open_offboarding(employee_id)
        if existing:
            raise AlreadyPendingError(
                f"Employee {employee_id} already has open offboarding ticket #{existing['id']}")

        name = f"{employee['first_name']} {employee['last_name']}"
        live_access = self.access_repo.get_live_for_employee(employee_id)
        metadata = {
            'employee_id': employee_id,
            'last_day': last_day,
            'reason': reason,
            'notes': notes,
            'previous_status': employee['status'],
            'approvals': {stage: 'pending' for stage in STAGES},
            'approval_details': {},
            'systems_to_revoke': [
                {'access_id': a['id'], 'system_id': a['system_id'],
                 'system_name': a['system_name'], 'access_level': a['access_level']}
                for a in live_access
            ],
        }
        description = f'Offboarding of {name}.'
        if reason:
            description += f' Reason: {reason}.'
        if last_day:
            description += f' Last day: {last_day}.'

        ticket_id = self.ticket_repo.create(
            title=f'Offboarding: {name}',
            description=description,
            requestor_id=requested_by_user.employee_id or employee_id,
            type='offboarding',
            status='in_progress',
            metadata=metadata,
        )
        self.employee_repo.set_status(employee_id, 'offboarding')

        try:
            approval = self.engine.submit(
                ENTITY_TYPE, ticket_id,
                context={
                    'employee_id': employee_id,
                    'department_id': employee.get('department_id'),
                    'access_count': len(live_access),
                },
                requested_by=requested_by_user.id,
            )
        except Exception:
            logger.warning(f'Offboarding submission failed for employee {employee_id}; rolling back')
            self.ticket_repo.delete(ticket_id)
            self.employee_repo.set_status(employee_id, employee['status'])
            raise

        self.activity_repo.log_activity(
            employee_id, 'offboarding', f'Offboarding started for {name}',
            metadata={'ticket_id': ticket_id, 'last_day': last_day, 'reason': reason},
        )
        logger.info(f'Offboarding started: employee {employee_id}, ticket #{ticket_id}')
        return {'ticket_id': ticket_id, 'approval_request': approval}

    def get_offboarding_status(self, ticket_id: int) -> Optional[Dict[str, Any]]:
        ticket = self.ticket_repo.get_by_id(ticket_id)
        if not ticket or ticket['type'] != 'offboarding':
            return None
        request = self.engine.requests.latest_for_entity(ENTITY_TYPE, ticket_id)
        decisions = self.engine.decisions.for_request(request['id']) if request else []
        metadata = ticket.get('metadata') or {}
        return {
            'ticket': ticket,
            'approval_request': request,
            'decisions': decisions,
            'stages': metadata.get('approvals') or {},
        }

    # ============== Hook side effects ==============

    def _load(self, ticket_id):
        ticket = self.ticket_repo.get_by_id(ticket_id)
        if not ticket or ticket['type'] != 'offboarding':
            logger.warning(f'Offboarding ticket {ticket_id} not found')
            return None, None
        return ticket, dict(ticket.get('metadata') or {})

    def record_stage_decision(self, ticket_id, step_name, decision, decided_by, comment=None):
        ticket, metadata = self._load(ticket_id)
        if not ticket:
            return
        stage = stage_key(step_name)
        approvals = dict(metadata.get('approvals') or {})
        approvals[stage] = decision
        details = dict(metadata.get('approval_details') or {})
        details[stage] = {
            'decision': decision, 'decided_by': decided_by,
            'decided_at': _now_iso(), 'comment': comment,
        }
        metadata['approvals'] = approvals
        metadata['approval_details'] = details
        self.ticket_repo.update(ticket_id, metadata=metadata)

    def complete(self, ticket_id):
        """Final approval: revoke access, deactivate and close the ticket."""
        ticket, metadata = self._load(ticket_id)
        if not ticket:
            return
        employee_id = metadata.get('employee_id')

        revoked = self.access_service.revoke_all_for_employee(employee_id)
        self.employee_repo.set_status(employee_id, 'inactive')
        disabled = self.user_repo.deactivate_for_employee(employee_id)

        metadata['approvals'] = dict.fromkeys(metadata.get('approvals') or STAGES, 'approved')
        metadata['outcome'] = 'approved'
        metadata['completed_at'] = _now_iso()
        metadata['revoked_count'] = revoked
        self.ticket_repo.update(ticket_id, status='closed', metadata=metadata)

        self.activity_repo.log_activity(
            employee_id, 'offboarding', 'Offboarding completed',
            metadata={'ticket_id': ticket_id, 'revoked_access': revoked,
                      'accounts_disabled': disabled},
        )
        self.activity_repo.log_activity(
            employee_id, 'ticket', f"Ticket closed: {ticket['title']}",
            metadata={'ticket_id': ticket_id},
        )
        logger.info(f'Offboarding completed: employee {employee_id}, ticket #{ticket_id}, '
                    f'{revoked} access entries revoked')

    def roll_back(self, ticket_id, outcome, note=None):
        """Rejected, cancelled or expired: restore the employee and close the ticket.

        The closed ticket keeps its outcome so a new offboarding can be
        started with a fresh ticket.
        """
        ticket, metadata = self._load(ticket_id)
        if not ticket:
            return
        employee_id = metadata.get('employee_id')
        previous_status = metadata.get('previous_status') or 'active'

        employee = self.employee_repo.get_by_id(employee_id)
        if employee and employee['status'] == 'offboarding':
            self.employee_repo.set_status(employee_id, previous_status)

        metadata['outcome'] = outcome
        metadata['outcome_note'] = note
        metadata['outcome_at'] = _now_iso()
        self.ticket_repo.update(ticket_id, status='closed', metadata=metadata)

        self.activity_repo.log_activity(
            employee_id, 'offboarding', f'Offboarding {outcome}',
            metadata={'ticket_id': ticket_id, 'note': note, 'restored_status': previous_status},
        )
        self.activity_repo.log_activity(
            employee_id, 'ticket', f"Ticket closed: {ticket['title']}",
            metadata={'ticket_id': ticket_id, 'outcome': outcome},
        )
        logger.info(f'Offboarding {outcome}: employee {employee_id}, ticket #{ticket_id}')
