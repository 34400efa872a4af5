"""Background jobs run by an APScheduler BackgroundScheduler.

Every gunicorn worker calls start_scheduler(); an exclusive flock on
.scheduler.lock lets only the first one actually run the jobs. A failing
job logs and returns so the scheduler keeps its schedule.
"""
import os
import atexit
import fcntl
from functools import wraps

from apscheduler.schedulers.background import BackgroundScheduler

from core.utils.logging_config import get_logger

logger = get_logger('staffhub.tasks.cleanup')

LOCK_PATH = os.path.join(os.path.dirname(__file__), '..', '.scheduler.lock')

scheduler = BackgroundScheduler(daemon=True)
_lock_file = None


def _job(label):
    def decorator(f):
        @wraps(f)
        def run():
            try:
                f()
            except Exception as e:
                logger.error(f'{label} failed: {e}')
        return run
    return decorator


@_job('Approval maintenance')
def process_approval_tasks():
    """Escalate timed-out steps, then send reminders, then expire stale requests."""
    from core.approvals.engine import ApprovalEngine
    engine = ApprovalEngine()
    counts = (engine.process_timeouts(), engine.process_reminders(), engine.process_expirations())
    if any(counts):
        logger.info('Approvals: {} escalated, {} reminded, {} expired'.format(*counts))


@_job('Access expiry')
def revoke_expired_access():
    from hr.access.services import AccessService
    revoked = AccessService().revoke_expired()
    if revoked:
        logger.info(f'Revoked {revoked} expired system access grants')


@_job('Notification cleanup')
def cleanup_old_notifications():
    """Drop notifications older than NOTIFICATION_RETENTION_DAYS (30 by default)."""
    from core.notifications.repositories.in_app_repo import InAppNotificationRepository
    days = int(os.environ.get('NOTIFICATION_RETENTION_DAYS', 30))
    deleted = InAppNotificationRepository().delete_old(days=days)
    if deleted:
        logger.info(f'Deleted {deleted} notifications older than {days} days')


@_job('Key-value cleanup')
def cleanup_kv_store():
    from core.settings.repositories import KeyValueRepository
    KeyValueRepository().cleanup_expired()


# (job, trigger, trigger arguments)
JOBS = (
    (process_approval_tasks, 'interval', {'hours': 1}),
    (revoke_expired_access, 'interval', {'hours': 1}),
    (cleanup_old_notifications, 'cron', {'hour': 1, 'minute': 0}),
    (cleanup_kv_store, 'interval', {'hours': 6}),
)


def _take_lock():
    """True when this process now holds the scheduler lock."""
    global _lock_file
    handle = None
    try:
        handle = open(LOCK_PATH, 'w')
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError:
        if handle:
            handle.close()
        return False
    handle.write(str(os.getpid()))
    handle.flush()
    _lock_file = handle
    return True


def start_scheduler():
    if scheduler.running:
        return
    if not _take_lock():
        logger.debug(f'Scheduler runs in another worker (pid={os.getpid()} skipped)')
        return
    for job, trigger, timing in JOBS:
        scheduler.add_job(job, trigger, id=job.__name__, replace_existing=True,
                          misfire_grace_time=300, coalesce=True, **timing)
    scheduler.start()
    atexit.register(stop_scheduler)
    logger.info(f'Scheduler started with {len(JOBS)} jobs (pid={os.getpid()})')


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info('Scheduler stopped')
