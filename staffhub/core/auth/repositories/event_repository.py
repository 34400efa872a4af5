"""Event Repository - the per-user security event log (logins, password and account changes)."""
import json
from typing import Dict, Any

from core.base_repository import BaseRepository

_EVENT_FILTERS = (
    ('user_id', 'ue.user_id = %s'),
    ('event_type', 'ue.event_type = %s'),
    ('entity_type', 'ue.entity_type = %s'),
    ('start_date', 'ue.created_at >= %s'),
    ('end_date', "ue.created_at < %s::date + INTERVAL '1 day'"),
)


class EventRepository(BaseRepository):

    def log_event(self, event_type: str, event_description: str = None, user_id: int = None,
                  user_email: str = None, entity_type: str = None, entity_id: int = None,
                  ip_address: str = None, user_agent: str = None,
                  details: Dict[str, Any] = None) -> int:
        """Record one event. `details` is stored as JSONB."""
        row = self.execute(
            'INSERT INTO user_events (user_id, user_email, event_type, event_description, '
            'entity_type, entity_id, ip_address, user_agent, details) '
            'VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s) RETURNING id',
            (user_id, user_email, event_type, event_description, entity_type, entity_id,
             ip_address, user_agent, json.dumps(details or {}, default=str)),
            returning=True,
        )
        return row['id']

    def get_events(self, limit: int = 100, offset: int = 0, **filters) -> list[dict]:
        """Newest first. `end_date` includes the whole day."""
        clauses, params = [], []
        for name, clause in _EVENT_FILTERS:
            if filters.get(name):
                clauses.append(clause)
                params.append(filters[name])
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ''
        params.extend([limit, offset])
        return self.query_all(f'''
            SELECT ue.*, u.name AS user_name
            FROM user_events ue
            LEFT JOIN users u ON u.id = ue.user_id
            {where}
            ORDER BY ue.created_at DESC
            LIMIT %s OFFSET %s
        ''', params)

    def get_event_types(self) -> list[str]:
        return [r['event_type'] for r in self.query_all(
            'SELECT DISTINCT event_type FROM user_events ORDER BY event_type')]
