"""Request Repository - approval requests and the queries the engine runs over them.

A user waits on a request when its current step names them directly or
names a role held by their linked employee, and they have not decided
on that step yet.
"""
import json
from typing import Optional, List, Dict, Any

from core.base_repository import BaseRepository

LIVE_STATUSES = ('pending', 'in_progress', 'escalated', 'on_hold')
FINAL_STATUSES = ('approved', 'rejected', 'cancelled', 'expired')

_SELECT = '''
    SELECT ar.*, af.name as flow_name, af.slug as flow_slug,
           st.name as current_step_name, st.step_order as current_step_order,
           u.name as requested_by_name
    FROM approval_requests ar
    JOIN approval_flows af ON af.id = ar.flow_id
    LEFT JOIN approval_steps st ON st.id = ar.current_step_id
    JOIN users u ON u.id = ar.requested_by
'''

_MEMBERS = '''
    SELECT u.id FROM users u
    JOIN employee_roles er ON er.employee_id = u.employee_id
    JOIN roles rl ON rl.id = er.role_id
    WHERE rl.name = %s AND u.is_active
'''

_WAITING_ON = '''
    ar.status IN ('pending', 'in_progress', 'escalated')
    AND (st.approver_user_id = %(user_id)s
         OR st.approver_role_name IN (
             SELECT rl.name FROM roles rl
             JOIN employee_roles er ON er.role_id = rl.id
             JOIN users u ON u.employee_id = er.employee_id
             WHERE u.id = %(user_id)s))
    AND NOT EXISTS (
        SELECT 1 FROM approval_decisions ad
        WHERE ad.request_id = ar.id AND ad.step_id = ar.current_step_id
          AND ad.decided_by = %(user_id)s)
'''


class RequestRepository(BaseRepository):

    def get_by_id(self, request_id: int) -> Optional[Dict[str, Any]]:
        return self.query_one(_SELECT + ' WHERE ar.id = %s', (request_id,))

    def for_entity(self, entity_type: str, entity_id: int) -> List[Dict[str, Any]]:
        """Every request ever raised for the entity, newest first."""
        return self.query_all(
            _SELECT + ' WHERE ar.entity_type = %s AND ar.entity_id = %s ORDER BY ar.id DESC',
            (entity_type, entity_id))

    def latest_for_entity(self, entity_type: str, entity_id: int) -> Optional[Dict[str, Any]]:
        return self.query_one(
            _SELECT + ' WHERE ar.entity_type = %s AND ar.entity_id = %s ORDER BY ar.id DESC LIMIT 1',
            (entity_type, entity_id))

    def live_request_id(self, entity_type: str, entity_id: int) -> Optional[int]:
        row = self.query_one('''
            SELECT id FROM approval_requests
            WHERE entity_type = %s AND entity_id = %s AND status = ANY(%s)
        ''', (entity_type, entity_id, list(LIVE_STATUSES)))
        return row['id'] if row else None

    def requested_by(self, user_id: int, limit: int = 50) -> List[Dict[str, Any]]:
        return self.query_all(
            _SELECT + ' WHERE ar.requested_by = %s ORDER BY ar.id DESC LIMIT %s', (user_id, limit))

    def create(self, flow_id: int, entity_type: str, entity_id: int, requested_by: int,
               context: Dict[str, Any]) -> int:
        row = self.execute('''
            INSERT INTO approval_requests (flow_id, entity_type, entity_id, requested_by, context_snapshot)
            VALUES (%s, %s, %s, %s, %s::jsonb)
            RETURNING id
        ''', (flow_id, entity_type, entity_id, requested_by, json.dumps(context, default=str)),
            returning=True)
        return row['id']

    def set_status(self, request_id: int, status: str, **fields) -> bool:
        """Move a request to `status`. A final status stamps `resolved_at`.

        `fields` may carry `current_step_id` and `resolution_note`.
        """
        updates = ['status = %s', 'updated_at = CURRENT_TIMESTAMP']
        params = [status]
        for column in ('current_step_id', 'resolution_note'):
            if column in fields:
                updates.append(f'{column} = %s')
                params.append(fields[column])
        if status in FINAL_STATUSES:
            updates.append('resolved_at = CURRENT_TIMESTAMP')
        params.append(request_id)
        return self.execute(
            f"UPDATE approval_requests SET {', '.join(updates)} WHERE id = %s", params) > 0

    # ============== Approvers ==============

    def waiting_on(self, user_id: int) -> List[Dict[str, Any]]:
        """Requests awaiting this user's decision, oldest first."""
        return self.query_all(f'''
            SELECT ar.*, af.name as flow_name, st.name as current_step_name,
                   u.name as requested_by_name,
                   ROUND((EXTRACT(EPOCH FROM (NOW() - ar.updated_at)) / 3600.0)::numeric, 1) as waiting_hours
            FROM approval_requests ar
            JOIN approval_flows af ON af.id = ar.flow_id
            JOIN approval_steps st ON st.id = ar.current_step_id
            JOIN users u ON u.id = ar.requested_by
            WHERE {_WAITING_ON}
            ORDER BY ar.updated_at, ar.id
        ''', {'user_id': user_id})

    def waiting_count(self, user_id: int) -> int:
        row = self.query_one(f'''
            SELECT COUNT(*) as waiting
            FROM approval_requests ar
            JOIN approval_steps st ON st.id = ar.current_step_id
            WHERE {_WAITING_ON}
        ''', {'user_id': user_id})
        return row['waiting'] if row else 0

    def role_member_ids(self, role_name: str) -> List[int]:
        return [r['id'] for r in self.query_all(_MEMBERS + ' ORDER BY u.id', (role_name,))]

    def has_role(self, user_id: int, role_name: str) -> bool:
        return self.query_one(_MEMBERS + ' AND u.id = %s', (role_name, user_id)) is not None

    # ============== Scheduler ==============

    def timed_out(self) -> List[Dict[str, Any]]:
        """Requests sitting on a step longer than its `timeout_hours`."""
        return self.query_all('''
            SELECT ar.id FROM approval_requests ar
            JOIN approval_steps st ON st.id = ar.current_step_id
            WHERE ar.status IN ('pending', 'in_progress')
              AND st.timeout_hours IS NOT NULL
              AND ar.updated_at < NOW() - make_interval(hours => st.timeout_hours)
        ''')

    def due_for_reminder(self) -> List[Dict[str, Any]]:
        """Waiting requests with no reminder sent within the step's reminder window."""
        return self.query_all('''
            SELECT ar.id, ar.entity_type, ar.entity_id, st.id as step_id, st.name as step_name
            FROM approval_requests ar
            JOIN approval_steps st ON st.id = ar.current_step_id
            WHERE ar.status IN ('pending', 'in_progress', 'escalated')
              AND st.reminder_after_hours IS NOT NULL
              AND ar.updated_at < NOW() - make_interval(hours => st.reminder_after_hours)
              AND NOT EXISTS (
                  SELECT 1 FROM approval_audit_log al
                  WHERE al.request_id = ar.id AND al.action = 'reminder_sent'
                    AND al.created_at > NOW() - make_interval(hours => st.reminder_after_hours))
        ''')

    def past_deadline(self) -> List[Dict[str, Any]]:
        """Live requests older than their flow's `auto_reject_after_hours`."""
        return self.query_all('''
            SELECT ar.*, af.auto_reject_after_hours
            FROM approval_requests ar
            JOIN approval_flows af ON af.id = ar.flow_id
            WHERE ar.status = ANY(%s)
              AND af.auto_reject_after_hours IS NOT NULL
              AND ar.requested_at < NOW() - make_interval(hours => af.auto_reject_after_hours)
        ''', (list(LIVE_STATUSES),))
