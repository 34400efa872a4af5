from .role_repository import RoleRepository
from .permission_repository import PermissionRepository, SCOPE_RANK

__all__ = ['RoleRepository', 'PermissionRepository', 'SCOPE_RANK']
