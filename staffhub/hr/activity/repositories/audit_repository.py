"""Audit Log Repository - row-level change history (`audit_log`)."""
import json

from core.base_repository import BaseRepository

_INSERT = '''
    INSERT INTO audit_log (table_name, row_id, action, diff, acted_by)
    VALUES (%s, %s, %s, %s::jsonb, %s)
    RETURNING id
'''


class AuditLogRepository(BaseRepository):

    def record(self, table_name, row_id, action, diff=None, acted_by=None, cursor=None):
        """Append a change record. `acted_by` is an employee id."""
        params = (table_name, row_id, action, json.dumps(diff or {}, default=str), acted_by)
        if cursor is not None:
            cursor.execute(_INSERT, params)
            return cursor.fetchone()['id']
        row = self.execute(_INSERT, params, returning=True)
        return row['id'] if row else None

    def get_for_row(self, table_name, row_id):
        return self.query_all('''
            SELECT al.*, e.first_name as acted_by_first_name, e.last_name as acted_by_last_name
            FROM audit_log al
            LEFT JOIN employees e ON e.id = al.acted_by
            WHERE al.table_name = %s AND al.row_id = %s
            ORDER BY al.created_at DESC, al.id DESC
        ''', (table_name, row_id))
