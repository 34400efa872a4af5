"""Permission repository.

Permission catalogue, role grants, and per-employee permission checks.
Lookups are cached per worker for five minutes; every write clears the cache.
"""

import json
import logging
import time

from core.base_repository import BaseRepository, is_unique_violation

logger = logging.getLogger('staffhub.core.roles.permission_repository')

_perm_cache = {}
_PERM_CACHE_TTL = 300  # 5 minutes

SCOPE_RANK = {'deny': 0, 'own': 1, 'department': 2, 'all': 3}


def _cache_get(key):
    cached = _perm_cache.get(key)
    if cached and (time.time() - cached[1]) < _PERM_CACHE_TTL:
        return cached[0]
    return None


def _cache_set(key, value):
    _perm_cache[key] = (value, time.time())


def _cache_clear():
    _perm_cache.clear()


def broadest_scope(scopes):
    """Widest of the given scopes, `deny` when there are none."""
    best = 'deny'
    for scope in scopes:
        if SCOPE_RANK.get(scope, 0) > SCOPE_RANK[best]:
            best = scope
    return best


class PermissionRepository(BaseRepository):

    # ---- Catalogue ----

    def get_all(self) -> list[dict]:
        """All permissions grouped by resource."""
        resources = {}
        for perm in self.get_flat():
            key = perm['resource']
            if key not in resources:
                resources[key] = {
                    'key': key,
                    'label': key.replace('_', ' ').title(),
                    'permissions': [],
                }
            resources[key]['permissions'].append(perm)
        return list(resources.values())

    def get_flat(self) -> list[dict]:
        return self.query_all('''
            SELECT id, name, resource, action, scope, field_level, description
            FROM permissions
            ORDER BY resource, action, id
        ''')

    def get(self, permission_id: int) -> dict | None:
        return self.query_one('SELECT * FROM permissions WHERE id = %s', (permission_id,))

    def create(self, name: str, resource: str, action: str, scope: str = 'all',
               field_level: dict = None, description: str = None) -> int:
        if scope not in ('own', 'department', 'all'):
            raise ValueError(f'Invalid scope: {scope}')
        try:
            result = self.execute('''
                INSERT INTO permissions (name, resource, action, scope, field_level, description)
                VALUES (%s, %s, %s, %s, %s::jsonb, %s)
                RETURNING id
            ''', (name, resource, action, scope,
                  json.dumps(field_level) if field_level is not None else None,
                  description), returning=True)
        except Exception as e:
            if is_unique_violation(e):
                raise ValueError(f"Permission '{name}' already exists")
            raise
        _cache_clear()
        return result['id']

    def update(self, permission_id: int, **fields) -> bool:
        updates = []
        params = []
        for key in ('name', 'resource', 'action', 'scope', 'description'):
            if fields.get(key) is not None:
                updates.append(f'{key} = %s')
                params.append(fields[key])
        if 'field_level' in fields:
            updates.append('field_level = %s::jsonb')
            value = fields['field_level']
            params.append(json.dumps(value) if value is not None else None)
        if fields.get('scope') is not None and fields['scope'] not in ('own', 'department', 'all'):
            raise ValueError(f"Invalid scope: {fields['scope']}")
        if not updates:
            return False
        params.append(permission_id)
        try:
            updated = self.execute(
                f"UPDATE permissions SET {', '.join(updates)} WHERE id = %s", params
            ) > 0
        except Exception as e:
            if is_unique_violation(e):
                raise ValueError('Permission with that name already exists')
            raise
        _cache_clear()
        return updated

    def delete(self, permission_id: int) -> bool:
        deleted = self.execute('DELETE FROM permissions WHERE id = %s', (permission_id,)) > 0
        _cache_clear()
        return deleted

    # ---- Role grants ----

    def get_role_permissions(self, role_id: int) -> list[dict]:
        """Permissions granted to a role."""
        cache_key = f'role_perms_{role_id}'
        cached = _cache_get(cache_key)
        if cached is not None:
            return cached
        result = self.query_all('''
            SELECT p.id, p.name, p.resource, p.action, p.scope, p.field_level, p.description
            FROM role_permissions rp
            JOIN permissions p ON p.id = rp.permission_id
            WHERE rp.role_id = %s
            ORDER BY p.resource, p.action, p.id
        ''', (role_id,))
        _cache_set(cache_key, result)
        return result

    def set_role_permissions(self, role_id: int, permission_ids: list[int]) -> bool:
        """Replace the role's grants with exactly `permission_ids`."""
        def _work(cursor):
            cursor.execute('DELETE FROM role_permissions WHERE role_id = %s', (role_id,))
            for perm_id in dict.fromkeys(int(p) for p in permission_ids):
                cursor.execute('''
                    INSERT INTO role_permissions (role_id, permission_id)
                    SELECT %s, id FROM permissions WHERE id = %s
                    ON CONFLICT DO NOTHING
                ''', (role_id, perm_id))
            return True

        self.execute_many(_work)
        _cache_clear()
        return True

    def add_permission_to_role(self, role_id: int, permission_id: int) -> bool:
        added = self.execute('''
            INSERT INTO role_permissions (role_id, permission_id)
            VALUES (%s, %s)
            ON CONFLICT DO NOTHING
        ''', (role_id, permission_id)) > 0
        _cache_clear()
        return added

    def remove_permission_from_role(self, role_id: int, permission_id: int) -> bool:
        removed = self.execute(
            'DELETE FROM role_permissions WHERE role_id = %s AND permission_id = %s',
            (role_id, permission_id)
        ) > 0
        _cache_clear()
        return removed

    # ---- Employee checks ----

    def get_employee_grants(self, employee_id: int) -> list[dict]:
        """Every permission granted to the employee, one row per role grant.

        Ordered by role assignment so later roles come last.
        """
        if not employee_id:
            return []
        cache_key = f'emp_grants_{employee_id}'
        cached = _cache_get(cache_key)
        if cached is not None:
            return cached
        result = self.query_all('''
            SELECT p.resource, p.action, p.scope, p.field_level, er.role_id
            FROM employee_roles er
            JOIN role_permissions rp ON rp.role_id = er.role_id
            JOIN permissions p ON p.id = rp.permission_id
            WHERE er.employee_id = %s
            ORDER BY er.assigned_at, er.role_id, p.id
        ''', (employee_id,))
        _cache_set(cache_key, result)
        return result

    def get_permission_map(self, employee_id: int) -> dict:
        """{'resource.action': broadest scope} for the employee."""
        grants = {}
        for row in self.get_employee_grants(employee_id):
            key = f"{row['resource']}.{row['action']}"
            grants[key] = broadest_scope([grants.get(key, 'deny'), row['scope']])
        return grants

    def has_permission(self, employee_id: int, resource: str, action: str) -> bool:
        return any(
            row['resource'] == resource and row['action'] == action
            for row in self.get_employee_grants(employee_id)
        )

    def get_permission_scope(self, employee_id: int, resource: str, action: str) -> str:
        """Broadest scope granted (`all` > `department` > `own`), else `deny`."""
        return broadest_scope(
            row['scope'] for row in self.get_employee_grants(employee_id)
            if row['resource'] == resource and row['action'] == action
        )

    def get_field_level_permissions(self, employee_id: int, resource: str) -> dict:
        """Merge the field_level maps of every grant on `resource`.

        Later roles override earlier ones field by field.
        """
        merged = {}
        for row in self.get_employee_grants(employee_id):
            if row['resource'] != resource:
                continue
            field_level = row.get('field_level')
            if isinstance(field_level, str):
                field_level = json.loads(field_level)
            if field_level:
                merged.update(field_level)
        return merged
