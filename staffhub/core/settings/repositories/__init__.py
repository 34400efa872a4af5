from .kv_repository import KeyValueRepository, NAMESPACES, GLOBAL_NAMESPACES

__all__ = ['KeyValueRepository', 'NAMESPACES', 'GLOBAL_NAMESPACES']
