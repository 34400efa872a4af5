"""User Repository - data access for user accounts.

Covers authentication, online-user tracking and admin user management.
"""
from typing import Optional, Dict, Any, List
from werkzeug.security import generate_password_hash, check_password_hash

from core.base_repository import BaseRepository, is_unique_violation

_USER_SELECT = '''
    SELECT u.*, e.department_id, e.first_name, e.last_name, e.status as employee_status
    FROM users u
    LEFT JOIN employees e ON e.id = u.employee_id
'''

_SAFE_COLUMNS = '''
    u.id, u.email, u.name, u.is_active, u.is_admin, u.employee_id,
    u.last_login, u.last_seen, u.created_at, u.updated_at,
    e.department_id, e.first_name, e.last_name
'''


class UserRepository(BaseRepository):
    """Repository for user data access operations."""

    def get_by_id(self, user_id: int) -> Optional[Dict[str, Any]]:
        """User joined with the linked employee's department."""
        return self.query_one(_USER_SELECT + ' WHERE u.id = %s', (user_id,))

    def get_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return self.query_one(_USER_SELECT + ' WHERE LOWER(u.email) = LOWER(%s)', (email,))

    def get_by_employee_id(self, employee_id: int) -> Optional[Dict[str, Any]]:
        return self.query_one(_USER_SELECT + ' WHERE u.employee_id = %s', (employee_id,))

    def update_password(self, user_id: int, password: str) -> bool:
        password_hash = generate_password_hash(password)
        return self.execute('''
            UPDATE users SET password_hash = %s, updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
        ''', (password_hash, user_id)) > 0

    def update_last_login(self, user_id: int) -> bool:
        return self.execute('''
            UPDATE users SET last_login = CURRENT_TIMESTAMP
            WHERE id = %s
        ''', (user_id,)) > 0

    def update_last_seen(self, user_id: int) -> bool:
        return self.execute('''
            UPDATE users SET last_seen = CURRENT_TIMESTAMP
            WHERE id = %s
        ''', (user_id,)) > 0

    def get_online_users(self, minutes: int = 5) -> List[Dict[str, Any]]:
        """Users active in the last N minutes."""
        rows = self.query_all('''
            SELECT id, name, email, last_seen
            FROM users
            WHERE last_seen IS NOT NULL
              AND last_seen > CURRENT_TIMESTAMP - (%s || ' minutes')::interval
            ORDER BY last_seen DESC
        ''', (str(int(minutes)),))
        return [{'id': row['id'], 'name': row['name'], 'email': row['email']} for row in rows]

    def get_online_count(self, minutes: int = 5) -> dict:
        users = self.get_online_users(minutes)
        return {'count': len(users), 'users': users}

    # --- Authentication ---

    def authenticate(self, email: str, password: str) -> Optional[Dict[str, Any]]:
        """None for unknown, inactive or password-less users and wrong passwords."""
        user = self.get_by_email(email)
        if not user or not user.get('is_active', False) or not user.get('password_hash'):
            return None
        if not check_password_hash(user['password_hash'], password):
            return None
        return user

    # --- Admin CRUD ---

    def get_all(self) -> list[dict]:
        return self.query_all(f'''
            SELECT {_SAFE_COLUMNS}
            FROM users u
            LEFT JOIN employees e ON e.id = u.employee_id
            ORDER BY u.name
        ''')

    def save(self, name: str, email: str, password: str = None, is_active: bool = True,
             is_admin: bool = False, employee_id: int = None) -> int:
        """Create a user. Returns user ID."""
        try:
            result = self.execute('''
                INSERT INTO users (name, email, password_hash, is_active, is_admin, employee_id)
                VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING id
            ''', (name, email, generate_password_hash(password) if password else None,
                  is_active, is_admin, employee_id), returning=True)
            return result['id']
        except Exception as e:
            if is_unique_violation(e):
                raise ValueError(f"User with email '{email}' already exists")
            raise

    def update(self, user_id: int, name: str = None, email: str = None,
               is_active: bool = None, is_admin: bool = None,
               employee_id: int = None, clear_employee: bool = False) -> bool:
        updates = []
        params = []
        if name is not None:
            updates.append('name = %s')
            params.append(name)
        if email is not None:
            updates.append('email = %s')
            params.append(email)
        if is_active is not None:
            updates.append('is_active = %s')
            params.append(is_active)
        if is_admin is not None:
            updates.append('is_admin = %s')
            params.append(is_admin)
        if clear_employee:
            updates.append('employee_id = NULL')
        elif employee_id is not None:
            updates.append('employee_id = %s')
            params.append(employee_id)
        if not updates:
            return False
        updates.append('updated_at = CURRENT_TIMESTAMP')
        params.append(user_id)
        try:
            return self.execute(f"UPDATE users SET {', '.join(updates)} WHERE id = %s", params) > 0
        except Exception as e:
            if is_unique_violation(e):
                raise ValueError('User with that email or employee link already exists')
            raise

    def deactivate_for_employee(self, employee_id: int) -> int:
        """Disable the account linked to an employee. Returns count updated."""
        return self.execute('''
            UPDATE users SET is_active = FALSE, updated_at = CURRENT_TIMESTAMP
            WHERE employee_id = %s AND is_active = TRUE
        ''', (employee_id,))

    def delete(self, user_id: int) -> bool:
        return self.execute('DELETE FROM users WHERE id = %s', (user_id,)) > 0
