"""Offboarding side effects driven by approval events.

Registered at app startup via register_offboarding_hooks(). Handlers
ignore events for other entity types.
"""
import logging

from .services import OffboardingService, ENTITY_TYPE

logger = logging.getLogger('staffhub.hr.offboarding.handlers')


def register_offboarding_hooks():
    from core.approvals.engine import refuse_resubmission
    from core.approvals.hooks import on

    on('approval.decided', _on_decided)
    on('approval.approved', _on_approved)
    on('approval.rejected', _on_rejected)
    on('approval.cancelled', _on_cancelled)
    on('approval.expired', _on_expired)
    # The ticket is closed once a request ends; a retry starts a new offboarding
    refuse_resubmission(ENTITY_TYPE, 'Offboarding requests cannot be resubmitted; start a new offboarding')

    logger.info('Offboarding hooks registered')


def _is_offboarding(payload):
    return payload.get('entity_type') == ENTITY_TYPE and payload.get('entity_id')


def _on_decided(payload):
    if not _is_offboarding(payload):
        return
    OffboardingService().record_stage_decision(
        payload['entity_id'], payload.get('step_name'), payload.get('decision'),
        payload.get('decided_by'), comment=payload.get('comment'),
    )


def _on_approved(payload):
    if _is_offboarding(payload):
        OffboardingService().complete(payload['entity_id'])


def _on_rejected(payload):
    if _is_offboarding(payload):
        OffboardingService().roll_back(
            payload['entity_id'], 'rejected', note=payload.get('note'))


def _on_cancelled(payload):
    if _is_offboarding(payload):
        OffboardingService().roll_back(payload['entity_id'], 'cancelled', note=payload.get('note'))


def _on_expired(payload):
    if _is_offboarding(payload):
        OffboardingService().roll_back(payload['entity_id'], 'expired', note=payload.get('note'))
