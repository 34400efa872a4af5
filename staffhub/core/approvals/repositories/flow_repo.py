"""Flow Repository - read access to approval flows and their steps.

Flows are seeded by the schema migration (the `offboarding` flow); the
application never edits them at runtime.
"""
from typing import Optional, List, Dict, Any

from core.base_repository import BaseRepository


class FlowRepository(BaseRepository):

    def active_for(self, entity_type: str) -> List[Dict[str, Any]]:
        """Active flows for an entity type, highest priority first."""
        return self.query_all('''
            SELECT * FROM approval_flows
            WHERE entity_type = %s AND is_active
            ORDER BY priority DESC, id
        ''', (entity_type,))

    def steps(self, flow_id: int) -> List[Dict[str, Any]]:
        return self.query_all(
            'SELECT * FROM approval_steps WHERE flow_id = %s ORDER BY step_order', (flow_id,))

    def step(self, step_id: int) -> Optional[Dict[str, Any]]:
        if not step_id:
            return None
        return self.query_one('SELECT * FROM approval_steps WHERE id = %s', (step_id,))
