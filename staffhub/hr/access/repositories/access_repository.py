"""Access Repository - data access for `system_access` entries.

An entry is live while its status is not `revoked`; each (employee,
system) pair has at most one live entry.
"""
from typing import Optional, List, Dict, Any

from core.base_repository import BaseRepository, is_unique_violation

_SELECT = '''
    SELECT sa.*, s.name as system_name, s.category as system_category,
           e.first_name, e.last_name, e.email as employee_email,
           g.first_name as granted_by_first_name, g.last_name as granted_by_last_name
    FROM system_access sa
    JOIN systems s ON s.id = sa.system_id
    JOIN employees e ON e.id = sa.employee_id
    LEFT JOIN employees g ON g.id = sa.granted_by_id
'''


_LIVE_EXISTS = 'Employee already has access or a pending request for this system'


class AccessRepository(BaseRepository):

    def get_all(self, employee_id: int = None, system_id: int = None,
                status: str = None) -> List[Dict[str, Any]]:
        conditions = []
        params = []
        if employee_id:
            conditions.append('sa.employee_id = %s')
            params.append(employee_id)
        if system_id:
            conditions.append('sa.system_id = %s')
            params.append(system_id)
        if status:
            conditions.append('sa.status = %s')
            params.append(status)
        where = (' WHERE ' + ' AND '.join(conditions)) if conditions else ''
        return self.query_all(_SELECT + where + ' ORDER BY sa.created_at DESC, sa.id DESC', params)

    def get_by_id(self, access_id: int) -> Optional[Dict[str, Any]]:
        return self.query_one(_SELECT + ' WHERE sa.id = %s', (access_id,))

    def get_for_employee(self, employee_id: int) -> List[Dict[str, Any]]:
        return self.query_all(
            _SELECT + ' WHERE sa.employee_id = %s ORDER BY s.name', (employee_id,))

    def get_live_for_employee(self, employee_id: int) -> List[Dict[str, Any]]:
        return self.query_all(
            _SELECT + " WHERE sa.employee_id = %s AND sa.status <> 'revoked' ORDER BY s.name",
            (employee_id,))

    def get_live(self, employee_id: int, system_id: int) -> Optional[Dict[str, Any]]:
        return self.query_one('''
            SELECT * FROM system_access
            WHERE employee_id = %s AND system_id = %s AND status <> 'revoked'
        ''', (employee_id, system_id))

    def create(self, employee_id: int, system_id: int, access_level: str = 'read',
               expires_at=None) -> int:
        """Insert a pending entry. Raises ValueError if a live one exists.

        FOR UPDATE finds nothing to lock when no row exists yet, so two
        concurrent requests can both pass the check; the partial unique
        index then rejects the second insert.
        """
        def _work(cursor):
            cursor.execute('''
                SELECT id FROM system_access
                WHERE employee_id = %s AND system_id = %s AND status <> 'revoked'
                FOR UPDATE
            ''', (employee_id, system_id))
            if cursor.fetchone():
                raise ValueError(_LIVE_EXISTS)
            cursor.execute('''
                INSERT INTO system_access (employee_id, system_id, access_level, expires_at, status)
                VALUES (%s, %s, %s, %s, 'pending')
                RETURNING id
            ''', (employee_id, system_id, access_level, expires_at))
            return cursor.fetchone()['id']
        try:
            return self.execute_many(_work)
        except Exception as e:
            if is_unique_violation(e):
                raise ValueError(_LIVE_EXISTS)
            raise

    def update_fields(self, access_id: int, **fields) -> bool:
        updates = []
        params = []
        for column in ('access_level', 'expires_at'):
            if column in fields:
                updates.append(f'{column} = %s')
                params.append(fields[column])
        if not updates:
            return False
        updates.append('updated_at = CURRENT_TIMESTAMP')
        params.append(access_id)
        return self.execute(
            f"UPDATE system_access SET {', '.join(updates)} WHERE id = %s", params) > 0

    def grant(self, access_id: int, granted_by_id: int = None) -> bool:
        return self.execute('''
            UPDATE system_access
            SET status = 'active', granted = TRUE, granted_by_id = %s,
                granted_at = CURRENT_TIMESTAMP, updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
        ''', (granted_by_id, access_id)) > 0

    def revoke(self, access_id: int) -> bool:
        return self.execute('''
            UPDATE system_access
            SET status = 'revoked', granted = FALSE, updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
        ''', (access_id,)) > 0

    def reopen(self, access_id: int) -> bool:
        """revoked -> pending."""
        return self.execute('''
            UPDATE system_access
            SET status = 'pending', granted = FALSE, granted_by_id = NULL,
                granted_at = NULL, updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
        ''', (access_id,)) > 0

    def revoke_all_for_employee(self, employee_id: int) -> List[Dict[str, Any]]:
        """Revoke every pending/active entry. Returns the revoked rows."""
        def _work(cursor):
            cursor.execute('''
                UPDATE system_access sa
                SET status = 'revoked', granted = FALSE, updated_at = CURRENT_TIMESTAMP
                FROM systems s
                WHERE s.id = sa.system_id
                  AND sa.employee_id = %s AND sa.status IN ('pending', 'active')
                RETURNING sa.id, sa.employee_id, sa.system_id, s.name as system_name
            ''', (employee_id,))
            return [dict(r) for r in cursor.fetchall()]
        return self.execute_many(_work)

    def revoke_expired(self) -> List[Dict[str, Any]]:
        """Active entries past `expires_at` become revoked. Returns them."""
        def _work(cursor):
            cursor.execute('''
                UPDATE system_access sa
                SET status = 'revoked', granted = FALSE, updated_at = CURRENT_TIMESTAMP
                FROM systems s
                WHERE s.id = sa.system_id
                  AND sa.status = 'active'
                  AND sa.expires_at IS NOT NULL AND sa.expires_at <= NOW()
                RETURNING sa.id, sa.employee_id, sa.system_id, s.name as system_name
            ''')
            return [dict(r) for r in cursor.fetchall()]
        return self.execute_many(_work)
