"""User model for Flask-Login authentication."""
from flask_login import UserMixin

_SCOPE_RANK = {'deny': 0, 'own': 1, 'department': 2, 'all': 3}


class User(UserMixin):
    """Logged-in account.

    `permissions` maps 'resource.action' to the broadest scope granted by
    the roles of the linked employee.
    """

    def __init__(self, user_data, permissions=None):
        self.id = user_data['id']
        self.email = user_data['email']
        self.name = user_data['name']
        self.is_admin = bool(user_data.get('is_admin', False))
        self.is_active_user = user_data.get('is_active', True)
        self.employee_id = user_data.get('employee_id')
        self.department_id = user_data.get('department_id')
        self.permissions = dict(permissions or {})

    @property
    def is_active(self):
        return self.is_active_user

    def has_permission(self, resource: str, action: str = None) -> bool:
        """
        Usage:
            user.has_permission('tickets', 'update')
            user.has_permission('tickets.update')
        """
        if self.is_admin:
            return True
        if action is None and '.' in resource:
            resource, action = resource.split('.', 1)
        return f'{resource}.{action}' in self.permissions

    def permission_scope(self, resource: str, action: str) -> str:
        """`all`, `department`, `own` or `deny`."""
        if self.is_admin:
            return 'all'
        return self.permissions.get(f'{resource}.{action}', 'deny')

    def permission_keys(self) -> list[str]:
        return sorted(self.permissions)
