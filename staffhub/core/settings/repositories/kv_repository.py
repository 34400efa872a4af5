"""Key-value repository over the `key_value_store` table.

Entries are unique on (namespace, key, user_id); a NULL user_id marks a
global entry. Expired entries are invisible to reads and are purged by
the scheduler.
"""

import json
import logging

from core.base_repository import BaseRepository
from database import dict_from_row

logger = logging.getLogger('staffhub.core.settings.kv_repository')

NAMESPACES = ('user_preferences', 'app_config', 'announcements', 'session_data', 'cache')
GLOBAL_NAMESPACES = ('app_config', 'announcements')

_LIVE = '(expires_at IS NULL OR expires_at > NOW())'


def _user_clause(user_id):
    if user_id is None:
        return 'user_id IS NULL', ()
    return 'user_id = %s', (user_id,)


class KeyValueRepository(BaseRepository):

    def get(self, namespace, key, user_id=None):
        """Live entry or None."""
        user_sql, user_params = _user_clause(user_id)
        return self.query_one(f'''
            SELECT * FROM key_value_store
            WHERE namespace = %s AND key = %s AND {user_sql} AND {_LIVE}
        ''', (namespace, key) + user_params)

    def get_namespace(self, namespace, user_id=None):
        user_sql, user_params = _user_clause(user_id)
        return self.query_all(f'''
            SELECT * FROM key_value_store
            WHERE namespace = %s AND {user_sql} AND {_LIVE}
            ORDER BY key
        ''', (namespace,) + user_params)

    def set(self, namespace, key, value, user_id=None, expires_at=None, overwrite=True):
        """Insert or replace an entry and return it.

        With overwrite=False an existing live entry is returned unchanged.
        """
        if namespace not in NAMESPACES:
            raise ValueError(f'Unknown namespace: {namespace}')
        user_sql, user_params = _user_clause(user_id)

        def _work(cursor):
            cursor.execute(f'''
                SELECT *, {_LIVE} as is_live FROM key_value_store
                WHERE namespace = %s AND key = %s AND {user_sql}
                FOR UPDATE
            ''', (namespace, key) + user_params)
            existing = cursor.fetchone()
            if existing:
                if existing['is_live'] and not overwrite:
                    entry = dict_from_row(existing)
                    entry.pop('is_live', None)
                    return entry
                cursor.execute('''
                    UPDATE key_value_store
                    SET value = %s::jsonb, expires_at = %s, updated_at = NOW()
                    WHERE id = %s
                    RETURNING *
                ''', (json.dumps(value, default=str), expires_at, existing['id']))
            else:
                cursor.execute('''
                    INSERT INTO key_value_store (namespace, key, value, user_id, expires_at)
                    VALUES (%s, %s, %s::jsonb, %s, %s)
                    RETURNING *
                ''', (namespace, key, json.dumps(value, default=str), user_id, expires_at))
            return dict_from_row(cursor.fetchone())

        return self.execute_many(_work)

    def delete(self, namespace, key, user_id=None):
        user_sql, user_params = _user_clause(user_id)
        return self.execute(f'''
            DELETE FROM key_value_store
            WHERE namespace = %s AND key = %s AND {user_sql}
        ''', (namespace, key) + user_params) > 0

    def cleanup_expired(self):
        """Delete expired entries. Returns count deleted."""
        count = self.execute(
            'DELETE FROM key_value_store WHERE expires_at IS NOT NULL AND expires_at <= NOW()'
        )
        if count:
            logger.info(f'Purged {count} expired key-value entries')
        return count
