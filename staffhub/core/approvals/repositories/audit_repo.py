"""Audit Repository - append-only trail of everything that happens to a request.

`actor_id` is NULL for entries written by the engine itself (step
changes, scheduler escalations and expirations).
"""
import json
from typing import List, Dict, Any

from core.base_repository import BaseRepository


class AuditRepository(BaseRepository):

    def log(self, request_id: int, action: str, actor_id: int = None,
            details: Dict[str, Any] = None) -> int:
        row = self.execute('''
            INSERT INTO approval_audit_log (request_id, action, actor_id, details)
            VALUES (%s, %s, %s, %s::jsonb)
            RETURNING id
        ''', (request_id, action, actor_id, json.dumps(details or {}, default=str)),
            returning=True)
        return row['id']

    def for_request(self, request_id: int) -> List[Dict[str, Any]]:
        return self.query_all('''
            SELECT al.*, u.name as actor_name
            FROM approval_audit_log al
            LEFT JOIN users u ON u.id = al.actor_id
            WHERE al.request_id = %s
            ORDER BY al.created_at, al.id
        ''', (request_id,))
