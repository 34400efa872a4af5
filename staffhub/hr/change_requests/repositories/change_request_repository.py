"""Change Request Repository.

Approving a request applies the payload to the employee, writes the
audit record and logs the activity in a single transaction.
"""
import json
import logging
from typing import Optional, List, Dict, Any

from core.base_repository import BaseRepository, is_unique_violation
from core.approvals.engine import InvalidStateError
from database import dict_from_row
from hr.activity.repositories import ActivityRepository, AuditLogRepository
from hr.directory.repositories.employee_repository import apply_update

logger = logging.getLogger('staffhub.hr.change_requests.repository')

_SELECT = '''
    SELECT cr.*,
           t.first_name as target_first_name, t.last_name as target_last_name,
           t.manager_id as target_manager_id,
           r.first_name as requester_first_name, r.last_name as requester_last_name
    FROM change_requests cr
    JOIN employees t ON t.id = cr.target_employee_id
    JOIN employees r ON r.id = cr.requester_employee_id
'''


class ChangeRequestRepository(BaseRepository):

    def __init__(self):
        self._activity_repo = ActivityRepository()
        self._audit_repo = AuditLogRepository()

    def get_by_id(self, request_id: int) -> Optional[Dict[str, Any]]:
        return self.query_one(_SELECT + ' WHERE cr.id = %s', (request_id,))

    def create(self, target_employee_id: int, requester_employee_id: int,
               payload: Dict[str, Any], comment: str = None) -> int:
        row = self.execute('''
            INSERT INTO change_requests (target_employee_id, requester_employee_id, payload, comment)
            VALUES (%s, %s, %s::jsonb, %s)
            RETURNING id
        ''', (target_employee_id, requester_employee_id,
              json.dumps(payload, default=str), comment), returning=True)
        return row['id']

    def get_pending(self, manager_employee_id: int = None) -> List[Dict[str, Any]]:
        """All pending requests, or those for one manager's direct reports."""
        if manager_employee_id is None:
            return self.query_all(
                _SELECT + " WHERE cr.status = 'pending' ORDER BY cr.created_at, cr.id")
        return self.query_all(
            _SELECT + " WHERE cr.status = 'pending' AND t.manager_id = %s"
                      " ORDER BY cr.created_at, cr.id",
            (manager_employee_id,))

    def get_for_requester(self, requester_employee_id: int) -> List[Dict[str, Any]]:
        return self.query_all(
            _SELECT + ' WHERE cr.requester_employee_id = %s ORDER BY cr.created_at DESC, cr.id DESC',
            (requester_employee_id,))

    def approve(self, request_id: int, approver_employee_id: int,
                comment: str = None) -> Dict[str, Any]:
        """Apply the payload and mark approved. Returns the updated row."""
        def _work(cursor):
            cursor.execute('SELECT * FROM change_requests WHERE id = %s FOR UPDATE', (request_id,))
            request = cursor.fetchone()
            if not request or request['status'] != 'pending':
                raise InvalidStateError(f'Change request {request_id} is not pending')
            payload = request['payload'] or {}
            target_id = request['target_employee_id']

            apply_update(cursor, target_id, payload)
            cursor.execute('''
                UPDATE change_requests
                SET status = 'approved', approved_by_id = %s,
                    comment = COALESCE(%s, comment), updated_at = CURRENT_TIMESTAMP
                WHERE id = %s
                RETURNING *
            ''', (approver_employee_id, comment, request_id))
            updated = cursor.fetchone()

            self._audit_repo.record('employees', target_id, 'update', payload,
                                    approver_employee_id, cursor=cursor)
            self._activity_repo.log_activity(
                target_id, 'change_request',
                f"Change request approved: {', '.join(sorted(payload))}",
                metadata={'change_request_id': request_id, 'approved_by': approver_employee_id},
                cursor=cursor,
            )
            return dict_from_row(updated)

        try:
            return self.execute_many(_work)
        except InvalidStateError:
            raise
        except Exception as e:
            if is_unique_violation(e):
                raise ValueError('Another employee already uses that email')
            raise

    def reject(self, request_id: int, approver_employee_id: int,
               comment: str = None) -> Dict[str, Any]:
        row = self.execute('''
            UPDATE change_requests
            SET status = 'rejected', approved_by_id = %s,
                comment = COALESCE(%s, comment), updated_at = CURRENT_TIMESTAMP
            WHERE id = %s AND status = 'pending'
            RETURNING *
        ''', (approver_employee_id, comment, request_id), returning=True)
        if not row:
            raise InvalidStateError(f'Change request {request_id} is not pending')
        return row
