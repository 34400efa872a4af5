from .change_request_repository import ChangeRequestRepository

__all__ = ['ChangeRequestRepository']
