"""Activity Repository - per-employee activity feed.

`log_activity` accepts an optional cursor so callers running a
multi-statement transaction (execute_many) can record the activity in
the same transaction.
"""
import json
import logging

from core.base_repository import BaseRepository

logger = logging.getLogger('staffhub.hr.activity.repository')

ACTIVITY_TYPES = (
    'profile_update', 'system_access', 'ticket', 'onboarding', 'offboarding',
    'user_deletion', 'change_request',
)

_INSERT = '''
    INSERT INTO activities (employee_id, activity_type, description, metadata)
    VALUES (%s, %s, %s, %s::jsonb)
    RETURNING id
'''

_SELECT = '''
    SELECT a.*, e.first_name, e.last_name, e.avatar
    FROM activities a
    JOIN employees e ON e.id = a.employee_id
'''


class ActivityRepository(BaseRepository):

    def log_activity(self, employee_id, activity_type, description, metadata=None, cursor=None):
        """Insert an activity row. Returns the new id."""
        if activity_type not in ACTIVITY_TYPES:
            raise ValueError(f'Invalid activity type: {activity_type}')
        params = (employee_id, activity_type, description,
                  json.dumps(metadata or {}, default=str))
        if cursor is not None:
            cursor.execute(_INSERT, params)
            return cursor.fetchone()['id']
        row = self.execute(_INSERT, params, returning=True)
        return row['id'] if row else None

    def get_recent(self, limit=10):
        return self.query_all(_SELECT + ' ORDER BY a.timestamp DESC, a.id DESC LIMIT %s', (limit,))

    def get_for_employee(self, employee_id, limit=50):
        return self.query_all(
            _SELECT + ' WHERE a.employee_id = %s ORDER BY a.timestamp DESC, a.id DESC LIMIT %s',
            (employee_id, limit))

    def get_all(self, employee_id=None, activity_type=None, start_date=None,
                end_date=None, limit=100, offset=0):
        conditions = []
        params = []
        if employee_id:
            conditions.append('a.employee_id = %s')
            params.append(employee_id)
        if activity_type:
            conditions.append('a.activity_type = %s')
            params.append(activity_type)
        if start_date:
            conditions.append('a.timestamp >= %s')
            params.append(start_date)
        if end_date:
            conditions.append('a.timestamp <= %s')
            params.append(end_date)
        where = (' WHERE ' + ' AND '.join(conditions)) if conditions else ''
        params.extend([limit, offset])
        return self.query_all(
            _SELECT + where + ' ORDER BY a.timestamp DESC, a.id DESC LIMIT %s OFFSET %s', params)
