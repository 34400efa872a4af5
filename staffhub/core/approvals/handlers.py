"""In-app notifications for approval events.

Approvers hear about requests that reach their step; requesters hear
about the outcome. Offboarding side effects are registered separately
by hr.offboarding.handlers.
"""
import logging

from core.notifications.notify import notify_user, notify_users

logger = logging.getLogger('staffhub.core.approvals.handlers')

QUEUE_LINK = '/approvals/api/my-queue'

# event -> (outcome shown to the requester, fallback message)
_OUTCOMES = {
    'approval.approved': ('approved', 'All approval steps completed.'),
    'approval.rejected': ('rejected', 'Your request was rejected.'),
    'approval.returned': ('returned', 'Changes were requested.'),
    'approval.expired': ('expired', 'No decision was made in time.'),
}


def register_approval_hooks():
    from core.approvals.hooks import on

    on('approval.submitted', _on_step_reached)
    on('approval.step_advanced', _on_step_reached)
    on('approval.escalated', _on_step_reached)
    on('approval.reminder', _on_reminder)
    for event in _OUTCOMES:
        on(event, _on_outcome(event))
    logger.info('Approval notification hooks registered')


def _label(payload):
    entity = (payload.get('entity_type') or 'request').replace('_', ' ').capitalize()
    return f"{entity} #{payload.get('entity_id')}"


def _approvers(request_id):
    from core.approvals.engine import ApprovalEngine
    return ApprovalEngine().get_current_step_approvers(request_id)


def _on_step_reached(payload):
    approver_ids = _approvers(payload['request_id'])
    if not approver_ids:
        return
    step = payload.get('step_name')
    notify_users(
        approver_ids,
        f'Approval needed: {_label(payload)}',
        message=f'Waiting on step: {step}' if step else None,
        link=QUEUE_LINK,
        entity_type=payload.get('entity_type'),
        entity_id=payload.get('entity_id'),
        type='approval',
    )


def _on_reminder(payload):
    approver_ids = _approvers(payload['request_id'])
    if approver_ids:
        notify_users(approver_ids, f'Reminder: {_label(payload)} is waiting on you',
                     link=QUEUE_LINK, type='approval')


def _on_outcome(event):
    outcome, fallback = _OUTCOMES[event]

    def handler(payload):
        if not payload.get('requested_by'):
            return
        if payload.get('auto_approved'):
            message = 'No approval steps applied.'
        else:
            message = payload.get('note') or fallback
        notify_user(
            payload['requested_by'],
            f'{_label(payload)} {outcome}',
            message=message,
            link=f"/approvals/api/requests/{payload['request_id']}",
            entity_type=payload.get('entity_type'),
            entity_id=payload.get('entity_id'),
            type='approval',
        )
    handler.__name__ = f'_on_{outcome}'
    return handler
