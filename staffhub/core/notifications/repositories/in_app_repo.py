"""Notification centre storage (`notifications` table).

Rows are only ever read, marked read or aged out by their owner; other
modules write through core.notifications.notify.
"""
from core.base_repository import BaseRepository

_INSERT = '''
    INSERT INTO notifications (user_id, type, title, message, link, entity_type, entity_id)
    VALUES (%s, %s, %s, %s, %s, %s, %s)
    RETURNING id
'''


class InAppNotificationRepository(BaseRepository):

    def create(self, user_id, title, type='info', message=None, link=None,
               entity_type=None, entity_id=None):
        row = self.execute(_INSERT, (user_id, type, title, message, link, entity_type, entity_id),
                           returning=True)
        return row['id'] if row else None

    def create_bulk(self, user_ids, title, type='info', message=None, link=None,
                    entity_type=None, entity_id=None):
        """Same notification for each distinct user, in one transaction. Returns the ids."""
        recipients = list(dict.fromkeys(user_ids or ()))
        if not recipients:
            return []

        def insert_all(cursor):
            created = []
            for user_id in recipients:
                cursor.execute(_INSERT, (user_id, type, title, message, link, entity_type, entity_id))
                created.append(cursor.fetchone()['id'])
            return created
        return self.execute_many(insert_all)

    def get_for_user(self, user_id, limit=20, offset=0, unread_only=False):
        unread = 'AND NOT is_read' if unread_only else ''
        return self.query_all(f'''
            SELECT * FROM notifications
            WHERE user_id = %s {unread}
            ORDER BY created_at DESC, id DESC
            LIMIT %s OFFSET %s
        ''', (user_id, limit, offset))

    def get_unread_count(self, user_id):
        row = self.query_one(
            'SELECT COUNT(*) AS unread FROM notifications WHERE user_id = %s AND NOT is_read',
            (user_id,))
        return row['unread'] if row else 0

    def mark_read(self, notification_id, user_id):
        """False when the notification is not the user's."""
        return self.execute(
            'UPDATE notifications SET is_read = TRUE WHERE id = %s AND user_id = %s',
            (notification_id, user_id)) > 0

    def mark_all_read(self, user_id):
        return self.execute(
            'UPDATE notifications SET is_read = TRUE WHERE user_id = %s AND NOT is_read',
            (user_id,))

    def delete_old(self, days=30):
        return self.execute(
            'DELETE FROM notifications WHERE created_at < NOW() - make_interval(days => %s)',
            (int(days),))
