"""StaffHub core services.

Shared service-layer types used by the HR section.
"""
from typing import Any, Optional
from dataclasses import dataclass


@dataclass
class ServiceResult:
    """Result of a service operation."""
    success: bool
    data: Any = None
    error: Optional[str] = None
    status_code: int = 200

    @classmethod
    def ok(cls, data=None):
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error, status_code=400):
        return cls(success=False, error=error, status_code=status_code)


__all__ = ['ServiceResult']
