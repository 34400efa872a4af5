"""System Repository - catalogue of systems employees can be granted access to."""
from typing import Optional, List, Dict, Any

from core.base_repository import BaseRepository, is_unique_violation


class SystemRepository(BaseRepository):

    def get_all(self) -> List[Dict[str, Any]]:
        return self.query_all('''
            SELECT s.*,
                   COUNT(sa.id) FILTER (WHERE sa.status = 'active') as active_users,
                   COUNT(sa.id) FILTER (WHERE sa.status = 'pending') as pending_requests
            FROM systems s
            LEFT JOIN system_access sa ON sa.system_id = s.id
            GROUP BY s.id
            ORDER BY s.name
        ''')

    def get_by_id(self, system_id: int) -> Optional[Dict[str, Any]]:
        return self.query_one('SELECT * FROM systems WHERE id = %s', (system_id,))

    def create(self, name: str, description: str = None, category: str = None) -> int:
        try:
            row = self.execute('''
                INSERT INTO systems (name, description, category)
                VALUES (%s, %s, %s)
                RETURNING id
            ''', (name, description, category), returning=True)
            return row['id']
        except Exception as e:
            if is_unique_violation(e):
                raise ValueError(f"System '{name}' already exists")
            raise

    def update(self, system_id: int, **fields) -> bool:
        updates = []
        params = []
        for column in ('name', 'description', 'category'):
            if column in fields:
                updates.append(f'{column} = %s')
                params.append(fields[column])
        if not updates:
            return False
        updates.append('updated_at = CURRENT_TIMESTAMP')
        params.append(system_id)
        try:
            return self.execute(f"UPDATE systems SET {', '.join(updates)} WHERE id = %s", params) > 0
        except Exception as e:
            if is_unique_violation(e):
                raise ValueError(f"System '{fields.get('name')}' already exists")
            raise
