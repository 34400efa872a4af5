"""BaseRepository - pooled connection handling shared by every repository.

Subclasses only write SQL:

    class SystemRepository(BaseRepository):
        def get_by_id(self, system_id):
            return self.query_one('SELECT * FROM systems WHERE id = %s', (system_id,))

        def replace_grants(self, role_id, permission_ids):
            def _work(cursor):
                cursor.execute('DELETE ...')
                cursor.execute('INSERT ...')
            return self.execute_many(_work)

Rows come back as plain dicts with dates already ISO formatted.
"""
from contextlib import contextmanager

from psycopg2 import errorcodes

from database import get_db, get_cursor, release_db, dict_from_row


def is_unique_violation(error):
    """True when `error` was raised by a unique constraint or index."""
    if getattr(error, 'pgcode', None) == errorcodes.UNIQUE_VIOLATION:
        return True
    message = str(error).lower()
    return 'unique' in message or 'duplicate' in message


class BaseRepository:

    @contextmanager
    def _cursor(self, transaction=False):
        """Cursor on a pooled connection. Writes commit on exit and roll back on error."""
        conn = get_db()
        try:
            if transaction:
                conn.autocommit = False
            yield get_cursor(conn)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            release_db(conn)

    def query_one(self, sql, params=None):
        with self._cursor() as cursor:
            cursor.execute(sql, params or ())
            row = cursor.fetchone()
        return dict_from_row(row) if row else None

    def query_all(self, sql, params=None):
        with self._cursor() as cursor:
            cursor.execute(sql, params or ())
            rows = cursor.fetchall()
        return [dict_from_row(r) for r in rows]

    def execute(self, sql, params=None, returning=False):
        """Run one write. Returns the RETURNING row when `returning`, else the rowcount."""
        with self._cursor() as cursor:
            cursor.execute(sql, params or ())
            if returning:
                row = cursor.fetchone()
                return dict_from_row(row) if row else None
            return cursor.rowcount

    def execute_many(self, callback):
        """Run `callback(cursor)` in one transaction and return its result."""
        with self._cursor(transaction=True) as cursor:
            return callback(cursor)
