"""Ticket Repository - data access for tickets."""
import json
from typing import Optional, List, Dict, Any

from core.base_repository import BaseRepository

_SELECT = '''
    SELECT t.*,
           r.first_name as requestor_first_name, r.last_name as requestor_last_name,
           a.first_name as assignee_first_name, a.last_name as assignee_last_name,
           s.name as system_name
    FROM tickets t
    JOIN employees r ON r.id = t.requestor_id
    LEFT JOIN employees a ON a.id = t.assignee_id
    LEFT JOIN systems s ON s.id = t.system_id
'''

_FILTERS = ('status', 'type', 'priority', 'requestor_id', 'assignee_id')


class TicketRepository(BaseRepository):

    def get_all(self, **filters) -> List[Dict[str, Any]]:
        """Tickets matching any of `status`, `type`, `priority`, `requestor_id`, `assignee_id`."""
        conditions = []
        params = []
        for column in _FILTERS:
            value = filters.get(column)
            if value not in (None, ''):
                conditions.append(f't.{column} = %s')
                params.append(value)
        where = (' WHERE ' + ' AND '.join(conditions)) if conditions else ''
        return self.query_all(_SELECT + where + ' ORDER BY t.created_at DESC, t.id DESC', params)

    def get_by_id(self, ticket_id: int) -> Optional[Dict[str, Any]]:
        return self.query_one(_SELECT + ' WHERE t.id = %s', (ticket_id,))

    def get_for_employee(self, employee_id: int) -> List[Dict[str, Any]]:
        """Tickets the employee requested or is assigned to."""
        return self.query_all(
            _SELECT + ' WHERE t.requestor_id = %s OR t.assignee_id = %s'
                      ' ORDER BY t.created_at DESC, t.id DESC',
            (employee_id, employee_id))

    def get_open_offboarding(self, employee_id: int) -> Optional[Dict[str, Any]]:
        """The employee's offboarding ticket that has not reached an outcome yet."""
        return self.query_one('''
            SELECT * FROM tickets
            WHERE type = 'offboarding' AND status <> 'closed'
              AND metadata->>'outcome' IS NULL
              AND (metadata->>'employee_id')::int = %s
            ORDER BY id DESC LIMIT 1
        ''', (employee_id,))

    def create(self, title: str, description: str, requestor_id: int, type: str = 'request',
               priority: str = 'medium', status: str = 'open', metadata: Dict = None,
               assignee_id: int = None, system_id: int = None) -> int:
        row = self.execute('''
            INSERT INTO tickets (title, description, requestor_id, assignee_id, system_id,
                                 status, priority, type, metadata, closed_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s::jsonb,
                    CASE WHEN %s = 'closed' THEN CURRENT_TIMESTAMP END)
            RETURNING id
        ''', (title, description, requestor_id, assignee_id, system_id, status, priority,
              type, json.dumps(metadata or {}, default=str), status), returning=True)
        return row['id']

    def update(self, ticket_id: int, **fields) -> bool:
        """Update columns. A status change maintains `closed_at`."""
        updates = []
        params = []
        for column in ('title', 'description', 'assignee_id', 'system_id', 'priority', 'type'):
            if column in fields:
                updates.append(f'{column} = %s')
                params.append(fields[column])
        if 'metadata' in fields:
            updates.append('metadata = %s::jsonb')
            params.append(json.dumps(fields['metadata'] or {}, default=str))
        if 'status' in fields:
            updates.append('status = %s')
            params.append(fields['status'])
            if fields['status'] == 'closed':
                updates.append('closed_at = COALESCE(closed_at, CURRENT_TIMESTAMP)')
            else:
                updates.append('closed_at = NULL')
        if not updates:
            return False
        updates.append('updated_at = CURRENT_TIMESTAMP')
        params.append(ticket_id)
        return self.execute(f"UPDATE tickets SET {', '.join(updates)} WHERE id = %s", params) > 0

    def delete(self, ticket_id: int) -> bool:
        return self.execute('DELETE FROM tickets WHERE id = %s', (ticket_id,)) > 0
