"""Approval engine repositories."""
from .flow_repo import FlowRepository
from .request_repo import RequestRepository
from .decision_repo import DecisionRepository
from .audit_repo import AuditRepository

__all__ = ['FlowRepository', 'RequestRepository', 'DecisionRepository', 'AuditRepository']
