"""Role repository.

Roles plus their assignment to employees.
"""

import logging

from core.base_repository import BaseRepository, is_unique_violation
from .permission_repository import _cache_clear

logger = logging.getLogger('staffhub.core.roles.role_repository')


class RoleRepository(BaseRepository):

    def get_all(self) -> list[dict]:
        return self.query_all('''
            SELECT r.*,
                   (SELECT COUNT(*) FROM employee_roles er WHERE er.role_id = r.id) as employee_count
            FROM roles r
            ORDER BY r.name
        ''')

    def get(self, role_id: int) -> dict | None:
        return self.query_one('SELECT * FROM roles WHERE id = %s', (role_id,))

    def get_by_name(self, name: str) -> dict | None:
        return self.query_one('SELECT * FROM roles WHERE name = %s', (name,))

    def save(self, name: str, description: str = None, is_default: bool = False) -> int:
        """Create a role. Returns role ID."""
        try:
            result = self.execute('''
                INSERT INTO roles (name, description, is_default)
                VALUES (%s, %s, %s)
                RETURNING id
            ''', (name, description, bool(is_default)), returning=True)
            return result['id']
        except Exception as e:
            if is_unique_violation(e):
                raise ValueError(f"Role '{name}' already exists")
            raise

    def update(self, role_id: int, name: str = None, description: str = None,
               is_default: bool = None) -> bool:
        updates = []
        params = []
        if name is not None:
            updates.append('name = %s')
            params.append(name)
        if description is not None:
            updates.append('description = %s')
            params.append(description)
        if is_default is not None:
            updates.append('is_default = %s')
            params.append(bool(is_default))
        if not updates:
            return False
        params.append(role_id)
        try:
            return self.execute(
                f"UPDATE roles SET {', '.join(updates)} WHERE id = %s", params
            ) > 0
        except Exception as e:
            if is_unique_violation(e):
                raise ValueError('Role with that name already exists')
            raise

    def delete(self, role_id: int) -> bool:
        """Delete a role. Raises ValueError while any employee holds it."""
        def _work(cursor):
            cursor.execute('SELECT COUNT(*) as count FROM employee_roles WHERE role_id = %s', (role_id,))
            if cursor.fetchone()['count'] > 0:
                raise ValueError('Cannot delete role that is assigned to employees')
            cursor.execute('DELETE FROM roles WHERE id = %s', (role_id,))
            return cursor.rowcount > 0
        deleted = self.execute_many(_work)
        _cache_clear()
        return deleted

    # ---- Employee roles ----

    def get_employee_roles(self, employee_id: int) -> list[dict]:
        return self.query_all('''
            SELECT r.id, r.name, r.description, r.is_default,
                   er.assigned_at, er.assigned_by, u.name as assigned_by_name
            FROM employee_roles er
            JOIN roles r ON r.id = er.role_id
            LEFT JOIN users u ON u.id = er.assigned_by
            WHERE er.employee_id = %s
            ORDER BY er.assigned_at, r.name
        ''', (employee_id,))

    def assign_role(self, employee_id: int, role_id: int, assigned_by: int = None) -> bool:
        """Grant a role to an employee. Returns False if already assigned."""
        assigned = self.execute('''
            INSERT INTO employee_roles (employee_id, role_id, assigned_by)
            VALUES (%s, %s, %s)
            ON CONFLICT DO NOTHING
        ''', (employee_id, role_id, assigned_by)) > 0
        _cache_clear()
        return assigned

    def remove_role(self, employee_id: int, role_id: int) -> bool:
        removed = self.execute(
            'DELETE FROM employee_roles WHERE employee_id = %s AND role_id = %s',
            (employee_id, role_id)
        ) > 0
        _cache_clear()
        return removed

    def assign_default_roles(self, employee_id: int, assigned_by: int = None) -> int:
        """Grant every `is_default` role. Returns count assigned."""
        count = self.execute('''
            INSERT INTO employee_roles (employee_id, role_id, assigned_by)
            SELECT %s, id, %s FROM roles WHERE is_default = TRUE
            ON CONFLICT DO NOTHING
        ''', (employee_id, assigned_by))
        _cache_clear()
        return count
