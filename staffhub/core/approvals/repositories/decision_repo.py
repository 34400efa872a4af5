"""Decision Repository - one row per approver per step."""
from typing import List, Dict, Any

from core.base_repository import BaseRepository


class DecisionRepository(BaseRepository):

    def record(self, request_id: int, step_id: int, decided_by: int, decision: str,
               comment: str = None) -> int:
        row = self.execute('''
            INSERT INTO approval_decisions (request_id, step_id, decided_by, decision, comment)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING id
        ''', (request_id, step_id, decided_by, decision, comment), returning=True)
        return row['id']

    def for_request(self, request_id: int) -> List[Dict[str, Any]]:
        """Decisions in the order they were made, with decider and step names."""
        return self.query_all('''
            SELECT ad.*, u.name as decided_by_name, st.name as step_name, st.step_order
            FROM approval_decisions ad
            JOIN users u ON u.id = ad.decided_by
            JOIN approval_steps st ON st.id = ad.step_id
            WHERE ad.request_id = %s
            ORDER BY ad.decided_at, ad.id
        ''', (request_id,))

    def has_decided(self, request_id: int, step_id: int, user_id: int) -> bool:
        return self.query_one('''
            SELECT 1 FROM approval_decisions
            WHERE request_id = %s AND step_id = %s AND decided_by = %s
        ''', (request_id, step_id, user_id)) is not None

    def approvals_on_step(self, request_id: int, step_id: int) -> int:
        row = self.query_one('''
            SELECT COUNT(*) as approvals FROM approval_decisions
            WHERE request_id = %s AND step_id = %s AND decision = 'approved'
        ''', (request_id, step_id))
        return row['approvals'] if row else 0
