"""Employee Repository - data access for the employees table.

Visibility scopes follow the permission model:
- own: only the caller's employee record
- department: the caller's department
- all: everyone
"""
from typing import Optional, List, Dict, Any

from core.base_repository import BaseRepository, is_unique_violation

# Fields a profile change (direct edit or change request) may touch.
EDITABLE_FIELDS = (
    'first_name', 'last_name', 'email', 'phone', 'position',
    'department_id', 'manager_id', 'avatar',
)
_UPDATABLE = EDITABLE_FIELDS + ('hire_date', 'status')

_SELECT = '''
    SELECT e.*,
           d.name as department_name,
           m.first_name as manager_first_name, m.last_name as manager_last_name
    FROM employees e
    LEFT JOIN departments d ON d.id = e.department_id
    LEFT JOIN employees m ON m.id = e.manager_id
'''


def apply_update(cursor, employee_id, fields):
    """UPDATE an employee on an open cursor. Returns rowcount.

    Unknown keys are ignored; callers validate field names first.
    """
    updates = []
    params = []
    for column in _UPDATABLE:
        if column in fields:
            updates.append(f'{column} = %s')
            params.append(fields[column])
    if not updates:
        return 0
    updates.append('updated_at = CURRENT_TIMESTAMP')
    params.append(employee_id)
    cursor.execute(f"UPDATE employees SET {', '.join(updates)} WHERE id = %s", params)
    return cursor.rowcount


class EmployeeRepository(BaseRepository):

    def get_all(self, scope: str = 'all', viewer_employee_id: int = None,
                viewer_department_id: int = None, status: str = None,
                department_id: int = None, q: str = None) -> List[Dict[str, Any]]:
        """Employees visible under `scope`, with optional filters."""
        conditions = []
        params = []

        if scope == 'own':
            if viewer_employee_id is None:
                return []
            conditions.append('e.id = %s')
            params.append(viewer_employee_id)
        elif scope == 'department':
            if viewer_department_id is None:
                if viewer_employee_id is None:
                    return []
                conditions.append('e.id = %s')
                params.append(viewer_employee_id)
            else:
                conditions.append('e.department_id = %s')
                params.append(viewer_department_id)
        elif scope != 'all':
            return []

        if status:
            conditions.append('e.status = %s')
            params.append(status)
        if department_id:
            conditions.append('e.department_id = %s')
            params.append(department_id)
        if q:
            conditions.append('''(
                e.first_name ILIKE %s OR e.last_name ILIKE %s
                OR e.email ILIKE %s OR e.position ILIKE %s
                OR (e.first_name || ' ' || e.last_name) ILIKE %s
            )''')
            pattern = f'%{q}%'
            params.extend([pattern] * 5)

        where = (' WHERE ' + ' AND '.join(conditions)) if conditions else ''
        return self.query_all(_SELECT + where + ' ORDER BY e.last_name, e.first_name', params)

    def get_by_id(self, employee_id: int) -> Optional[Dict[str, Any]]:
        return self.query_one(_SELECT + ' WHERE e.id = %s', (employee_id,))

    def get_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return self.query_one(_SELECT + ' WHERE LOWER(e.email) = LOWER(%s)', (email,))

    def get_direct_reports(self, manager_id: int) -> List[Dict[str, Any]]:
        return self.query_all(
            _SELECT + ' WHERE e.manager_id = %s ORDER BY e.last_name, e.first_name',
            (manager_id,))

    def get_manager_map(self) -> Dict[int, Optional[int]]:
        rows = self.query_all('SELECT id, manager_id FROM employees')
        return {r['id']: r['manager_id'] for r in rows}

    def get_chart_rows(self) -> List[Dict[str, Any]]:
        return self.query_all('''
            SELECT id, first_name, last_name, position, department_id, manager_id, avatar, status
            FROM employees
            ORDER BY last_name, first_name
        ''')

    def create(self, first_name: str, last_name: str, email: str, phone: str = None,
               position: str = None, department_id: int = None, manager_id: int = None,
               hire_date=None, avatar: str = None, status: str = 'active') -> int:
        """Insert an employee. Returns employee ID."""
        try:
            row = self.execute('''
                INSERT INTO employees (first_name, last_name, email, phone, position,
                                       department_id, manager_id, hire_date, avatar, status)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING id
            ''', (first_name, last_name, email, phone, position, department_id,
                  manager_id, hire_date, avatar, status), returning=True)
            return row['id']
        except Exception as e:
            if is_unique_violation(e):
                raise ValueError(f"Employee with email '{email}' already exists")
            raise

    def update(self, employee_id: int, **fields) -> bool:
        def _work(cursor):
            return apply_update(cursor, employee_id, fields) > 0
        try:
            return self.execute_many(_work)
        except Exception as e:
            if is_unique_violation(e):
                raise ValueError(f"Employee with email '{fields.get('email')}' already exists")
            raise

    def set_status(self, employee_id: int, status: str) -> bool:
        return self.execute('''
            UPDATE employees SET status = %s, updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
        ''', (status, employee_id)) > 0
