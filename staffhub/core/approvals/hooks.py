"""In-process callback registry for approval events.

    from core.approvals.hooks import on, fire

    on('approval.approved', handle_offboarding_approved)
    fire('approval.approved', {'request_id': 7, 'entity_type': 'offboarding', 'entity_id': 12})

Events fired by ApprovalEngine:
    approval.submitted, approval.decided, approval.step_advanced,
    approval.approved, approval.rejected, approval.returned,
    approval.cancelled, approval.escalated, approval.expired,
    approval.reminder
"""

import logging

logger = logging.getLogger('staffhub.core.approvals.hooks')

EVENTS = (
    'approval.submitted', 'approval.decided', 'approval.step_advanced',
    'approval.approved', 'approval.rejected', 'approval.returned',
    'approval.cancelled', 'approval.escalated', 'approval.expired',
    'approval.reminder',
)

_registry: dict[str, list] = {}


def on(event_type: str, callback):
    """Register `callback(payload)` for an event type."""
    _registry.setdefault(event_type, []).append(callback)
    logger.debug(f'Registered hook for {event_type}: {getattr(callback, "__name__", callback)}')


def fire(event_type: str, payload: dict):
    """Call every callback registered for `event_type`.

    A failing handler is logged and the remaining handlers still run.
    """
    for cb in list(_registry.get(event_type, [])):
        try:
            cb(payload)
        except Exception as e:
            name = getattr(cb, '__name__', repr(cb))
            logger.error(f'Hook error for {event_type} in {name}: {e}', exc_info=True)


def clear(event_type: str = None):
    """Drop registered hooks (all of them, or one event type). Used in tests."""
    if event_type:
        _registry.pop(event_type, None)
    else:
        _registry.clear()
