"""Department Repository - data access for departments."""
from typing import Optional, List, Dict, Any

from core.base_repository import BaseRepository, is_unique_violation


class DepartmentRepository(BaseRepository):

    def get_all(self) -> List[Dict[str, Any]]:
        """All departments with headcount and manager name."""
        return self.query_all('''
            SELECT d.*,
                   m.first_name as manager_first_name, m.last_name as manager_last_name,
                   (SELECT COUNT(*) FROM employees e WHERE e.department_id = d.id) as employee_count
            FROM departments d
            LEFT JOIN employees m ON m.id = d.manager_id
            ORDER BY d.name
        ''')

    def get_by_id(self, department_id: int) -> Optional[Dict[str, Any]]:
        return self.query_one('''
            SELECT d.*,
                   m.first_name as manager_first_name, m.last_name as manager_last_name,
                   (SELECT COUNT(*) FROM employees e WHERE e.department_id = d.id) as employee_count
            FROM departments d
            LEFT JOIN employees m ON m.id = d.manager_id
            WHERE d.id = %s
        ''', (department_id,))

    def create(self, name: str, description: str = None, manager_id: int = None) -> int:
        try:
            row = self.execute('''
                INSERT INTO departments (name, description, manager_id)
                VALUES (%s, %s, %s)
                RETURNING id
            ''', (name, description, manager_id), returning=True)
            return row['id']
        except Exception as e:
            if is_unique_violation(e):
                raise ValueError(f"Department '{name}' already exists")
            raise

    def update(self, department_id: int, **fields) -> bool:
        updates = []
        params = []
        for column in ('name', 'description', 'manager_id'):
            if column in fields:
                updates.append(f'{column} = %s')
                params.append(fields[column])
        if not updates:
            return False
        updates.append('updated_at = CURRENT_TIMESTAMP')
        params.append(department_id)
        try:
            return self.execute(
                f"UPDATE departments SET {', '.join(updates)} WHERE id = %s", params) > 0
        except Exception as e:
            if is_unique_violation(e):
                raise ValueError(f"Department '{fields.get('name')}' already exists")
            raise
