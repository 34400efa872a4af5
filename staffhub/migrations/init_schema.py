"""Database schema initialization.

Contains all CREATE TABLE and CREATE INDEX statements plus the reference
data (default roles, permissions, approval flow) for the StaffHub database.

Called by database.init_db() at application startup.
"""

# resource -> actions granted to the default roles below
DEFAULT_PERMISSIONS = [
    # (name, resource, action, scope, description)
    ('employees.view.own', 'employees', 'view', 'own', 'View own employee record'),
    ('employees.view.department', 'employees', 'view', 'department', 'View employees in own department'),
    ('employees.view.all', 'employees', 'view', 'all', 'View all employees'),
    ('employees.create', 'employees', 'create', 'all', 'Create employees'),
    ('employees.update', 'employees', 'update', 'all', 'Update employees'),
    ('employees.offboard', 'employees', 'offboard', 'all', 'Start offboarding for an employee'),
    ('departments.manage', 'departments', 'manage', 'all', 'Create and edit departments'),
    ('systems.manage', 'systems', 'manage', 'all', 'Create and edit systems'),
    ('system_access.request', 'system_access', 'request', 'own', 'Request system access'),
    ('system_access.view', 'system_access', 'view', 'all', 'View system access entries'),
    ('system_access.grant', 'system_access', 'grant', 'all', 'Grant or revoke system access'),
    ('tickets.create', 'tickets', 'create', 'own', 'Create tickets'),
    ('tickets.view', 'tickets', 'view', 'all', 'View all tickets'),
    ('tickets.update', 'tickets', 'update', 'all', 'Update and close tickets'),
    ('reports.view', 'reports', 'view', 'all', 'View dashboards and reports'),
    ('roles.manage', 'roles', 'manage', 'all', 'Administer roles and permissions'),
]

DEFAULT_ROLES = [
    # (name, description, is_default, [permission names])
    ('Employee', 'Baseline access for every employee', True, [
        'employees.view.own', 'system_access.request', 'tickets.create',
    ]),
    ('Manager', 'People managers', False, [
        'employees.view.department', 'system_access.request', 'tickets.create',
        'tickets.view', 'reports.view',
    ]),
    ('HR', 'Human resources', False, [
        'employees.view.all', 'employees.create', 'employees.update', 'employees.offboard',
        'departments.manage', 'tickets.create', 'tickets.view', 'tickets.update', 'reports.view',
    ]),
    ('IT', 'IT operations', False, [
        'employees.view.all', 'systems.manage', 'system_access.view', 'system_access.grant',
        'tickets.create', 'tickets.view', 'tickets.update', 'reports.view',
    ]),
]

OFFBOARDING_FLOW_STEPS = [
    # (name, step_order, approver_role_name)
    ('HR Approval', 1, 'HR'),
    ('IT Approval', 2, 'IT'),
]


def create_schema(conn, cursor):
    """Create all database tables, indexes, and reference data.

    Args:
        conn: Database connection (for commit/rollback)
        cursor: Database cursor from get_cursor(conn)
    """
    # ============== Directory ==============

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS departments (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            description TEXT,
            manager_id INTEGER,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS employees (
            id SERIAL PRIMARY KEY,
            first_name TEXT NOT NULL,
            last_name TEXT NOT NULL,
            email TEXT NOT NULL UNIQUE,
            phone TEXT,
            position TEXT,
            department_id INTEGER REFERENCES departments(id) ON DELETE SET NULL,
            manager_id INTEGER REFERENCES employees(id) ON DELETE SET NULL,
            hire_date DATE,
            avatar TEXT,
            status TEXT NOT NULL DEFAULT 'active',
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            CONSTRAINT chk_employee_status CHECK (
                status IN ('active','inactive','onboarding','offboarding')
            ),
            CONSTRAINT chk_employee_not_own_manager CHECK (manager_id IS NULL OR manager_id <> id)
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_employees_department ON employees(department_id)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_employees_manager ON employees(manager_id)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_employees_status ON employees(status)')

    cursor.execute('''
        DO $$
        BEGIN
            IF NOT EXISTS (
                SELECT 1 FROM pg_constraint WHERE conname = 'fk_departments_manager'
            ) THEN
                ALTER TABLE departments
                ADD CONSTRAINT fk_departments_manager
                FOREIGN KEY (manager_id) REFERENCES employees(id) ON DELETE SET NULL;
            END IF;
        END $$
    ''')

    # ============== Auth ==============

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS users (
            id SERIAL PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            name TEXT NOT NULL,
            password_hash TEXT,
            is_active BOOLEAN DEFAULT TRUE,
            is_admin BOOLEAN DEFAULT FALSE,
            employee_id INTEGER UNIQUE REFERENCES employees(id) ON DELETE SET NULL,
            last_login TIMESTAMP,
            last_seen TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS user_events (
            id SERIAL PRIMARY KEY,
            user_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
            user_email TEXT,
            event_type TEXT NOT NULL,
            event_description TEXT,
            entity_type TEXT,
            entity_id INTEGER,
            ip_address TEXT,
            user_agent TEXT,
            details JSONB DEFAULT '{}',
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_user_events_user ON user_events(user_id)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_user_events_created ON user_events(created_at DESC)')

    # ============== Roles & Permissions ==============

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS roles (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            description TEXT,
            is_default BOOLEAN DEFAULT FALSE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS permissions (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            resource TEXT NOT NULL,
            action TEXT NOT NULL,
            scope TEXT NOT NULL DEFAULT 'all',
            field_level JSONB,
            description TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            CONSTRAINT chk_permission_scope CHECK (scope IN ('own','department','all'))
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_permissions_resource ON permissions(resource, action)')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS role_permissions (
            role_id INTEGER NOT NULL REFERENCES roles(id) ON DELETE CASCADE,
            permission_id INTEGER NOT NULL REFERENCES permissions(id) ON DELETE CASCADE,
            PRIMARY KEY (role_id, permission_id)
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS employee_roles (
            employee_id INTEGER NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            role_id INTEGER NOT NULL REFERENCES roles(id) ON DELETE CASCADE,
            assigned_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
            assigned_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY (employee_id, role_id)
        )
    ''')

    # ============== Systems & Access ==============

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS systems (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            description TEXT,
            category TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS system_access (
            id SERIAL PRIMARY KEY,
            employee_id INTEGER NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            system_id INTEGER NOT NULL REFERENCES systems(id) ON DELETE CASCADE,
            access_level TEXT NOT NULL DEFAULT 'read',
            granted BOOLEAN DEFAULT FALSE,
            granted_by_id INTEGER REFERENCES employees(id) ON DELETE SET NULL,
            granted_at TIMESTAMP,
            expires_at TIMESTAMP,
            status TEXT NOT NULL DEFAULT 'pending',
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            CONSTRAINT chk_access_level CHECK (access_level IN ('read','write','admin')),
            CONSTRAINT chk_access_status CHECK (status IN ('pending','active','revoked'))
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_system_access_employee ON system_access(employee_id)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_system_access_system_status ON system_access(system_id, status)')
    cursor.execute('''
        CREATE UNIQUE INDEX IF NOT EXISTS idx_system_access_live
        ON system_access(employee_id, system_id) WHERE status <> 'revoked'
    ''')

    # ============== Tickets ==============

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS tickets (
            id SERIAL PRIMARY KEY,
            title TEXT NOT NULL,
            description TEXT,
            requestor_id INTEGER NOT NULL REFERENCES employees(id),
            assignee_id INTEGER REFERENCES employees(id) ON DELETE SET NULL,
            system_id INTEGER REFERENCES systems(id) ON DELETE SET NULL,
            status TEXT NOT NULL DEFAULT 'open',
            priority TEXT NOT NULL DEFAULT 'medium',
            type TEXT NOT NULL DEFAULT 'request',
            metadata JSONB DEFAULT '{}',
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            closed_at TIMESTAMP,
            CONSTRAINT chk_ticket_status CHECK (status IN ('open','in_progress','closed')),
            CONSTRAINT chk_ticket_priority CHECK (priority IN ('low','medium','high')),
            CONSTRAINT chk_ticket_type CHECK (type IN (
                'system_access','onboarding','offboarding','issue','request',
                'new_staff_request','it_support'
            ))
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_tickets_status ON tickets(status)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_tickets_requestor ON tickets(requestor_id)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_tickets_assignee ON tickets(assignee_id)')

    # ============== Activity & Audit ==============

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS activities (
            id SERIAL PRIMARY KEY,
            employee_id INTEGER NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            activity_type TEXT NOT NULL,
            description TEXT NOT NULL,
            metadata JSONB DEFAULT '{}',
            timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            CONSTRAINT chk_activity_type CHECK (activity_type IN (
                'profile_update','system_access','ticket','onboarding','offboarding',
                'user_deletion','change_request'
            ))
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_activities_employee ON activities(employee_id)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_activities_timestamp ON activities(timestamp DESC)')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS audit_log (
            id SERIAL PRIMARY KEY,
            table_name TEXT NOT NULL,
            row_id INTEGER NOT NULL,
            action TEXT NOT NULL,
            diff JSONB DEFAULT '{}',
            acted_by INTEGER REFERENCES employees(id) ON DELETE SET NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_audit_log_row ON audit_log(table_name, row_id)')

    # ============== Change Requests ==============

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS change_requests (
            id SERIAL PRIMARY KEY,
            target_employee_id INTEGER NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            requester_employee_id INTEGER NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            payload JSONB NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending',
            approved_by_id INTEGER REFERENCES employees(id) ON DELETE SET NULL,
            comment TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            CONSTRAINT chk_change_request_status CHECK (status IN ('pending','approved','rejected'))
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_change_requests_target ON change_requests(target_employee_id, status)')

    # ============== Approval Engine ==============

    # A flow is an ordered list of steps; each step is decided by one user
    # or by any active member of a role.
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS approval_flows (
            id SERIAL PRIMARY KEY,
            slug TEXT NOT NULL UNIQUE,
            name TEXT NOT NULL,
            entity_type TEXT NOT NULL,
            trigger_conditions JSONB NOT NULL DEFAULT '{}',
            priority INTEGER NOT NULL DEFAULT 0,
            auto_reject_after_hours INTEGER,
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_approval_flows_entity_type ON approval_flows(entity_type)')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS approval_steps (
            id SERIAL PRIMARY KEY,
            flow_id INTEGER NOT NULL REFERENCES approval_flows(id) ON DELETE CASCADE,
            step_order INTEGER NOT NULL,
            name TEXT NOT NULL,
            approver_user_id INTEGER REFERENCES users(id),
            approver_role_name TEXT,
            min_approvals INTEGER NOT NULL DEFAULT 1,
            skip_conditions JSONB NOT NULL DEFAULT '{}',
            reminder_after_hours INTEGER,
            timeout_hours INTEGER,
            escalation_step_id INTEGER REFERENCES approval_steps(id),
            UNIQUE (flow_id, step_order),
            CONSTRAINT chk_step_has_approver CHECK (
                approver_user_id IS NOT NULL OR approver_role_name IS NOT NULL
            )
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS approval_requests (
            id SERIAL PRIMARY KEY,
            flow_id INTEGER NOT NULL REFERENCES approval_flows(id),
            entity_type TEXT NOT NULL,
            entity_id INTEGER NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending',
            current_step_id INTEGER REFERENCES approval_steps(id),
            context_snapshot JSONB NOT NULL DEFAULT '{}',
            requested_by INTEGER NOT NULL REFERENCES users(id),
            requested_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            resolved_at TIMESTAMP,
            resolution_note TEXT,
            CONSTRAINT chk_approval_request_status CHECK (status IN (
                'pending', 'in_progress', 'escalated', 'on_hold',
                'approved', 'rejected', 'cancelled', 'expired'
            ))
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_approval_requests_entity ON approval_requests(entity_type, entity_id)')
    # At most one live request per entity, even under concurrent submits
    cursor.execute('''
        CREATE UNIQUE INDEX IF NOT EXISTS idx_approval_requests_live
        ON approval_requests(entity_type, entity_id)
        WHERE status IN ('pending', 'in_progress', 'escalated', 'on_hold')
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS approval_decisions (
            id SERIAL PRIMARY KEY,
            request_id INTEGER NOT NULL REFERENCES approval_requests(id) ON DELETE CASCADE,
            step_id INTEGER NOT NULL REFERENCES approval_steps(id),
            decided_by INTEGER NOT NULL REFERENCES users(id),
            decision TEXT NOT NULL,
            comment TEXT,
            decided_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (request_id, step_id, decided_by),
            CONSTRAINT chk_approval_decision CHECK (
                decision IN ('approved', 'rejected', 'returned', 'abstained')
            )
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS approval_audit_log (
            id SERIAL PRIMARY KEY,
            request_id INTEGER NOT NULL REFERENCES approval_requests(id) ON DELETE CASCADE,
            action TEXT NOT NULL,
            actor_id INTEGER REFERENCES users(id),
            details JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_approval_audit_request ON approval_audit_log(request_id, action)')

    # ============== Notifications ==============

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS notifications (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type TEXT NOT NULL DEFAULT 'info',
            title TEXT NOT NULL,
            message TEXT,
            link TEXT,
            entity_type TEXT,
            entity_id INTEGER,
            is_read BOOLEAN DEFAULT FALSE,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_notifications_user_unread ON notifications(user_id, is_read) WHERE is_read = FALSE')

    # ============== Key-Value Store ==============

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS key_value_store (
            id SERIAL PRIMARY KEY,
            namespace TEXT NOT NULL,
            key TEXT NOT NULL,
            value JSONB,
            user_id INTEGER REFERENCES users(id) ON DELETE CASCADE,
            expires_at TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')
    cursor.execute('''
        CREATE UNIQUE INDEX IF NOT EXISTS idx_kv_namespace_key_user
        ON key_value_store(namespace, key, COALESCE(user_id, 0))
    ''')

    _seed_reference_data(cursor)


def _seed_reference_data(cursor):
    """Default permissions, roles and the offboarding approval flow."""
    perm_ids = {}
    for name, resource, action, scope, description in DEFAULT_PERMISSIONS:
        cursor.execute('''
            INSERT INTO permissions (name, resource, action, scope, description)
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (name) DO UPDATE SET description = EXCLUDED.description
            RETURNING id
        ''', (name, resource, action, scope, description))
        perm_ids[name] = cursor.fetchone()['id']

    for name, description, is_default, grants in DEFAULT_ROLES:
        cursor.execute('''
            INSERT INTO roles (name, description, is_default)
            VALUES (%s, %s, %s)
            ON CONFLICT (name) DO UPDATE SET description = EXCLUDED.description
            RETURNING id
        ''', (name, description, is_default))
        role_id = cursor.fetchone()['id']
        for perm_name in grants:
            cursor.execute('''
                INSERT INTO role_permissions (role_id, permission_id)
                VALUES (%s, %s)
                ON CONFLICT DO NOTHING
            ''', (role_id, perm_ids[perm_name]))

    # Seeded once; later edits to the flow are left alone
    cursor.execute('''
        INSERT INTO approval_flows (slug, name, entity_type)
        VALUES ('offboarding', 'Employee Offboarding', 'offboarding')
        ON CONFLICT (slug) DO NOTHING
        RETURNING id
    ''')
    flow = cursor.fetchone()
    if flow:
        cursor.executemany('''
            INSERT INTO approval_steps (flow_id, name, step_order, approver_role_name)
            VALUES (%s, %s, %s, %s)
        ''', [(flow['id'], name, order, role) for name, order, role in OFFBOARDING_FLOW_STEPS])
