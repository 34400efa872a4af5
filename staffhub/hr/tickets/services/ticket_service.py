"""Ticket Service - ticket lifecycle rules.

Offboarding tickets are opened and moved by the offboarding workflow;
while one is in progress its status cannot be changed here.
"""
import logging
from typing import Dict, Any

from core.services import ServiceResult
from hr.activity.repositories import ActivityRepository
from hr.status import TICKET_TRANSITIONS, validate_transition
from ..repositories import TicketRepository
from .. import validation

logger = logging.getLogger('staffhub.hr.tickets.service')

# Offboarding tickets carry workflow state; only OffboardingService changes these
_WORKFLOW_FIELDS = ('status', 'type', 'metadata')


class TicketService:

    def __init__(self):
        self.ticket_repo = TicketRepository()
        self.activity_repo = ActivityRepository()

    def create_ticket(self, data: Dict[str, Any], requestor_id: int) -> ServiceResult:
        if not requestor_id:
            return ServiceResult.fail('A requestor employee is required')
        if data.get('type') == 'offboarding':
            return ServiceResult.fail(
                'Offboarding tickets are opened through the offboarding workflow')
        try:
            prepared = validation.prepare_new_ticket(data)
        except ValueError as e:
            return ServiceResult.fail(str(e))

        ticket_id = self.ticket_repo.create(requestor_id=requestor_id, **prepared)
        self.activity_repo.log_activity(
            requestor_id, 'ticket', f"Created a new ticket: {prepared['title']}",
            metadata={'ticket_id': ticket_id, 'type': prepared['type']},
        )
        if prepared.get('assignee_id'):
            self.activity_repo.log_activity(
                prepared['assignee_id'], 'ticket', f"Assigned to ticket: {prepared['title']}",
                metadata={'ticket_id': ticket_id},
            )
        logger.info(f"Ticket #{ticket_id} created ({prepared['type']}) by employee {requestor_id}")
        return ServiceResult.ok({'id': ticket_id})

    def update_ticket(self, ticket_id: int, data: Dict[str, Any],
                      acting_employee_id: int = None) -> ServiceResult:
        ticket = self.ticket_repo.get_by_id(ticket_id)
        if not ticket:
            return ServiceResult.fail('Ticket not found', 404)

        allowed = ('title', 'description', 'status', 'priority', 'type',
                   'assignee_id', 'system_id', 'metadata')
        fields = {k: data[k] for k in allowed if k in data}
        new_status = fields.get('status', ticket['status'])

        if ticket['type'] == 'offboarding':
            locked = [k for k in _WORKFLOW_FIELDS if k in fields and fields[k] != ticket.get(k)]
            if locked:
                return ServiceResult.fail(
                    f"Offboarding ticket {', '.join(locked)} is managed by the offboarding workflow", 409)
        if fields.get('type') == 'offboarding' and ticket['type'] != 'offboarding':
            return ServiceResult.fail(
                'Offboarding tickets are opened through the offboarding workflow')

        try:
            if 'title' in fields or 'description' in fields:
                fields['title'], fields['description'] = validation.validate_text(
                    fields.get('title', ticket['title']),
                    fields.get('description', ticket['description']))
            validation.validate_enums(fields.get('type'), fields.get('status'), fields.get('priority'))
            validate_transition('ticket', TICKET_TRANSITIONS, ticket['status'], new_status)
        except ValueError as e:
            return ServiceResult.fail(str(e))

        if 'metadata' in fields and not isinstance(fields['metadata'], dict):
            return ServiceResult.fail('metadata must be an object')
        metadata = fields.get('metadata', ticket.get('metadata') or {})
        if 'metadata' in fields and metadata.get('checklist'):
            metadata['progress'] = validation.checklist_progress(metadata['checklist'])

        closing = new_status == 'closed' and ticket['status'] != 'closed'
        if closing and ticket['type'] == 'new_staff_request':
            result = self._complete_new_staff_request(ticket, metadata)
            if not result.success:
                return result
            fields['metadata'] = result.data

        self.ticket_repo.update(ticket_id, **fields)

        if closing:
            self.activity_repo.log_activity(
                ticket['requestor_id'], 'ticket', f"Ticket closed: {ticket['title']}",
                metadata={'ticket_id': ticket_id, 'closed_by': acting_employee_id},
            )
        new_assignee = fields.get('assignee_id')
        if new_assignee and new_assignee != ticket.get('assignee_id'):
            self.activity_repo.log_activity(
                new_assignee, 'ticket', f"Assigned to ticket: {fields.get('title', ticket['title'])}",
                metadata={'ticket_id': ticket_id, 'assigned_by': acting_employee_id},
            )
        return ServiceResult.ok(self.ticket_repo.get_by_id(ticket_id))

    def update_checklist_item(self, ticket_id: int, index: int, completed: bool) -> ServiceResult:
        ticket = self.ticket_repo.get_by_id(ticket_id)
        if not ticket:
            return ServiceResult.fail('Ticket not found', 404)
        try:
            metadata = validation.toggle_checklist_item(ticket.get('metadata'), index, completed)
        except ValueError as e:
            return ServiceResult.fail(str(e))
        self.ticket_repo.update(ticket_id, metadata=metadata)
        return ServiceResult.ok({'checklist': metadata['checklist'], 'progress': metadata['progress']})

    def _complete_new_staff_request(self, ticket, metadata) -> ServiceResult:
        """Create the onboarding employee described by the ticket.

        Returns the metadata to store, with `employee_id` recorded.
        """
        from hr.directory.services import DirectoryService

        if not validation.checklist_complete(metadata):
            return ServiceResult.fail('All checklist items must be completed before closing')
        if metadata.get('employee_id'):
            return ServiceResult.ok(metadata)
        email = metadata.get('email') or metadata.get('work_email')
        if not email:
            return ServiceResult.fail('An email address is required to create the employee')

        created = DirectoryService().create_employee({
            'first_name': metadata.get('first_name'),
            'last_name': metadata.get('last_name'),
            'email': email,
            'phone': metadata.get('phone'),
            'position': metadata.get('position'),
            'department_id': metadata.get('department_id'),
            'manager_id': metadata.get('reporting_manager_id'),
            'hire_date': metadata.get('start_date'),
            'status': 'onboarding',
        })
        if not created.success:
            return created
        completed = dict(metadata, employee_id=created.data['id'])
        logger.info(f"New staff request #{ticket['id']} created employee {created.data['id']}")
        return ServiceResult.ok(completed)
