"""Ticket validation and checklist helpers.

Pure functions: no database access, so the rules are testable on plain
dicts. Violations raise ValueError with a user-facing message.
"""
import copy

from hr.status import TICKET_PRIORITIES, TICKET_STATUSES, TICKET_TYPES

TITLE_MIN_LENGTH = 5
DESCRIPTION_MIN_LENGTH = 10

NEW_STAFF_REQUIRED = (
    'first_name', 'last_name', 'position', 'reporting_manager_id',
    'department_id', 'start_date',
)
IT_SUPPORT_REQUIRED = ('issue_category', 'device_type', 'urgency', 'issue_details')

NEW_STAFF_CHECKLIST = (
    'Create work email for new staff',
    'Generate initial account password',
    'Share login information with the new starter',
)
IT_SUPPORT_CHECKLIST = (
    'Run initial diagnostics',
    'Implement solution',
    'Verify issue is resolved',
)


def _checklist(tasks, category):
    return [{'task': task, 'completed': False, 'category': category} for task in tasks]


def _missing(metadata, required):
    return [f for f in required if metadata.get(f) in (None, '')]


def checklist_progress(checklist):
    """Percentage of completed items, as an integer."""
    if not checklist:
        return 0
    done = sum(1 for item in checklist if item.get('completed'))
    return int(round(done * 100 / len(checklist)))


def checklist_complete(metadata):
    checklist = (metadata or {}).get('checklist') or []
    return all(item.get('completed') for item in checklist)


def toggle_checklist_item(metadata, index, completed):
    """Return a copy of `metadata` with item `index` set and progress recomputed."""
    updated = copy.deepcopy(metadata or {})
    checklist = updated.get('checklist') or []
    if not isinstance(index, int) or index < 0 or index >= len(checklist):
        raise ValueError(f'Checklist item {index} does not exist')
    checklist[index]['completed'] = bool(completed)
    updated['checklist'] = checklist
    updated['progress'] = checklist_progress(checklist)
    return updated


def validate_text(title, description):
    title = (title or '').strip()
    description = (description or '').strip()
    if len(title) < TITLE_MIN_LENGTH:
        raise ValueError(f'Title must be at least {TITLE_MIN_LENGTH} characters')
    if len(description) < DESCRIPTION_MIN_LENGTH:
        raise ValueError(f'Description must be at least {DESCRIPTION_MIN_LENGTH} characters')
    return title, description


def validate_enums(ticket_type=None, status=None, priority=None):
    if ticket_type is not None and ticket_type not in TICKET_TYPES:
        raise ValueError(f'Invalid ticket type: {ticket_type}')
    if status is not None and status not in TICKET_STATUSES:
        raise ValueError(f'Invalid ticket status: {status}')
    if priority is not None and priority not in TICKET_PRIORITIES:
        raise ValueError(f'Invalid ticket priority: {priority}')


def prepare_new_ticket(data):
    """Validate a create payload and fill type-specific defaults.

    Returns a dict with title, description, type, priority, status,
    metadata and the optional foreign keys.
    """
    ticket_type = data.get('type') or 'request'
    priority = data.get('priority') or 'medium'
    status = data.get('status') or 'open'
    validate_enums(ticket_type, status, priority)

    if not isinstance(data.get('metadata') or {}, dict):
        raise ValueError('metadata must be an object')
    metadata = dict(data.get('metadata') or {})
    title = (data.get('title') or '').strip()

    if ticket_type == 'new_staff_request':
        missing = _missing(metadata, NEW_STAFF_REQUIRED)
        if missing:
            raise ValueError(f"Missing required new staff fields: {', '.join(missing)}")
        if not title:
            title = (f"New Staff Request: {metadata['first_name']} "
                     f"{metadata['last_name']} ({metadata['position']})")
        metadata['checklist'] = _checklist(NEW_STAFF_CHECKLIST, 'accounts')
        metadata['progress'] = 0
    elif ticket_type == 'it_support':
        missing = _missing(metadata, IT_SUPPORT_REQUIRED)
        if missing:
            raise ValueError(f"Missing required IT support fields: {', '.join(missing)}")
        if not title:
            title = f"IT Support: {metadata['issue_category']} issue with {metadata['device_type']}"
        if str(metadata['urgency']).lower() == 'critical' and priority == 'low':
            priority = 'high'
        metadata['checklist'] = _checklist(IT_SUPPORT_CHECKLIST, 'support')
        metadata['progress'] = 0

    title, description = validate_text(title, data.get('description'))

    return {
        'title': title,
        'description': description,
        'type': ticket_type,
        'priority': priority,
        'status': status,
        'metadata': metadata,
        'assignee_id': data.get('assignee_id'),
        'system_id': data.get('system_id'),
    }
