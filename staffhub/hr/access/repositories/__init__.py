from .system_repository import SystemRepository
from .access_repository import AccessRepository

__all__ = ['SystemRepository', 'AccessRepository']
