from .access_service import AccessService

__all__ = ['AccessService']
