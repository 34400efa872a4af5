from .change_request_service import ChangeRequestService, DECISION_STATUSES

__all__ = ['ChangeRequestService', 'DECISION_STATUSES']
