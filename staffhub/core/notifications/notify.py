"""Fire-and-forget in-app notifications.

    notify_user(user_id, 'Offboarding approved', link='/api/offboarding/12')
    notify_users(approver_ids, 'Approval needed', type='approval')

A notification is never worth failing the caller's work over, so both
helpers log database errors and return None / [] instead of raising.
"""
import logging

from .repositories.in_app_repo import InAppNotificationRepository

logger = logging.getLogger('staffhub.core.notifications.notify')

_repo = InAppNotificationRepository()


def notify_user(user_id, title, message=None, link=None,
                entity_type=None, entity_id=None, type='info'):
    if not user_id:
        return None
    try:
        return _repo.create(user_id=user_id, title=title, type=type, message=message,
                            link=link, entity_type=entity_type, entity_id=entity_id)
    except Exception as e:
        logger.error(f"Notification '{title}' for user {user_id} not stored: {e}")
        return None


def notify_users(user_ids, title, message=None, link=None,
                 entity_type=None, entity_id=None, type='info'):
    """One notification per distinct, non-empty user id."""
    recipients = [uid for uid in user_ids or () if uid]
    if not recipients:
        return []
    try:
        return _repo.create_bulk(user_ids=recipients, title=title, type=type, message=message,
                                 link=link, entity_type=entity_type, entity_id=entity_id)
    except Exception as e:
        logger.error(f"Notification '{title}' for {len(recipients)} users not stored: {e}")
        return []
