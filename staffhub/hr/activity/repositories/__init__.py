from .activity_repository import ActivityRepository, ACTIVITY_TYPES
from .audit_repository import AuditLogRepository

__all__ = ['ActivityRepository', 'AuditLogRepository', 'ACTIVITY_TYPES']
