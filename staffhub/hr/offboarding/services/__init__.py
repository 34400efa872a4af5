from .offboarding_service import OffboardingService, ENTITY_TYPE, stage_key

__all__ = ['OffboardingService', 'ENTITY_TYPE', 'stage_key']
