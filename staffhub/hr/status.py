"""Status transition rules for employees, system access and tickets.

Each map lists the statuses a record may move to from its current one.
Moving to the same status is always allowed (a no-op update).
"""

EMPLOYEE_STATUSES = ('active', 'inactive', 'onboarding', 'offboarding')
ACCESS_STATUSES = ('pending', 'active', 'revoked')
ACCESS_LEVELS = ('read', 'write', 'admin')
TICKET_STATUSES = ('open', 'in_progress', 'closed')
TICKET_PRIORITIES = ('low', 'medium', 'high')
TICKET_TYPES = (
    'system_access', 'onboarding', 'offboarding', 'issue', 'request',
    'new_staff_request', 'it_support',
)

# `offboarding` is entered and left only through the offboarding workflow.
EMPLOYEE_TRANSITIONS = {
    'onboarding': ('active', 'inactive'),
    'active': ('inactive',),
    'inactive': ('active',),
    'offboarding': (),
}

WORKFLOW_EMPLOYEE_TRANSITIONS = {
    'onboarding': ('offboarding',),
    'active': ('offboarding',),
    'offboarding': ('inactive', 'active', 'onboarding'),
}

ACCESS_TRANSITIONS = {
    'pending': ('active', 'revoked'),
    'active': ('revoked',),
    'revoked': ('pending',),
}

TICKET_TRANSITIONS = {
    'open': ('in_progress', 'closed'),
    'in_progress': ('open', 'closed'),
    'closed': ('open',),
}


def can_transition(transitions, current, target):
    if current == target:
        return True
    return target in transitions.get(current, ())


def validate_transition(kind, transitions, current, target):
    """Raise ValueError unless `current -> target` is allowed."""
    if not can_transition(transitions, current, target):
        raise ValueError(f'Invalid {kind} status transition: {current} -> {target}')
