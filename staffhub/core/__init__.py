"""StaffHub core platform.

Shared infrastructure used by the HR section:
- Database repositories base class
- Authentication (users, sessions, admin user management)
- Roles and permissions
- Approval engine
- In-app notifications
- Key-value settings store
"""
