"""Directory Service - business logic for departments and employees.

Routes call these methods instead of reaching into repositories, except
for plain reads.
"""
import logging
from typing import Optional, List, Dict, Any

from core.services import ServiceResult
from core.roles.repositories import RoleRepository
from hr.activity.repositories import ActivityRepository, AuditLogRepository
from hr.status import EMPLOYEE_STATUSES, EMPLOYEE_TRANSITIONS, validate_transition
from .. import hierarchy
from ..repositories import DepartmentRepository, EmployeeRepository

logger = logging.getLogger('staffhub.hr.directory.service')

_CREATE_STATUSES = ('active', 'inactive', 'onboarding')
_UPDATE_FIELDS = (
    'first_name', 'last_name', 'email', 'phone', 'position',
    'department_id', 'manager_id', 'avatar', 'hire_date', 'status',
)


def _clean(value):
    return value.strip() if isinstance(value, str) else value


class DirectoryService:
    """Coordinates directory operations through the repository layer."""

    def __init__(self):
        self.department_repo = DepartmentRepository()
        self.employee_repo = EmployeeRepository()
        self.activity_repo = ActivityRepository()
        self.audit_repo = AuditLogRepository()
        self.role_repo = RoleRepository()

    # ============== Departments ==============

    def create_department(self, data: Dict[str, Any]) -> ServiceResult:
        name = _clean(data.get('name') or '')
        if not name:
            return ServiceResult.fail('Department name is required')
        manager_id = data.get('manager_id')
        if manager_id and not self.employee_repo.get_by_id(manager_id):
            return ServiceResult.fail('Manager not found', 404)
        try:
            dept_id = self.department_repo.create(name, _clean(data.get('description')), manager_id)
        except ValueError as e:
            return ServiceResult.fail(str(e), 409)
        logger.info(f'Department created: {name} (id={dept_id})')
        return ServiceResult.ok({'id': dept_id})

    def update_department(self, department_id: int, data: Dict[str, Any]) -> ServiceResult:
        if not self.department_repo.get_by_id(department_id):
            return ServiceResult.fail('Department not found', 404)
        fields = {k: _clean(data[k]) for k in ('name', 'description', 'manager_id') if k in data}
        if 'name' in fields and not fields['name']:
            return ServiceResult.fail('Department name cannot be empty')
        if fields.get('manager_id') and not self.employee_repo.get_by_id(fields['manager_id']):
            return ServiceResult.fail('Manager not found', 404)
        try:
            self.department_repo.update(department_id, **fields)
        except ValueError as e:
            return ServiceResult.fail(str(e), 409)
        return ServiceResult.ok()

    # ============== Visibility ==============

    def list_employees(self, user, status=None, department_id=None, q=None) -> List[Dict[str, Any]]:
        scope = user.permission_scope('employees', 'view')
        if scope == 'deny':
            return []
        return self.employee_repo.get_all(
            scope=scope,
            viewer_employee_id=user.employee_id,
            viewer_department_id=user.department_id,
            status=status, department_id=department_id, q=q,
        )

    def can_view(self, user, employee: Dict[str, Any]) -> bool:
        """Whether `user` may see `employee` under their view scope.

        Managers always see their direct reports.
        """
        if user.employee_id is not None and employee['id'] == user.employee_id:
            return True
        scope = user.permission_scope('employees', 'view')
        if scope == 'all':
            return True
        if user.employee_id is not None and employee.get('manager_id') == user.employee_id:
            return True
        if scope == 'department':
            return (user.department_id is not None
                    and employee.get('department_id') == user.department_id)
        return False

    def get_employee_detail(self, employee_id: int) -> Optional[Dict[str, Any]]:
        """Employee with department, manager, access, tickets and activities."""
        from hr.access.repositories import AccessRepository
        from hr.tickets.repositories import TicketRepository

        employee = self.employee_repo.get_by_id(employee_id)
        if not employee:
            return None
        employee['department'] = (self.department_repo.get_by_id(employee['department_id'])
                                  if employee.get('department_id') else None)
        employee['manager'] = (self.employee_repo.get_by_id(employee['manager_id'])
                               if employee.get('manager_id') else None)
        employee['direct_reports'] = self.employee_repo.get_direct_reports(employee_id)
        employee['system_access'] = AccessRepository().get_for_employee(employee_id)
        employee['tickets'] = TicketRepository().get_all(requestor_id=employee_id)
        employee['activities'] = self.activity_repo.get_for_employee(employee_id, limit=20)
        employee['roles'] = self.role_repo.get_employee_roles(employee_id)
        return employee

    # ============== Hierarchy ==============

    def validate_manager(self, employee_id: Optional[int], manager_id: Optional[int]):
        """Raise ValueError if `manager_id` is not a valid manager for `employee_id`."""
        if manager_id is None:
            return
        if employee_id is not None and manager_id == employee_id:
            raise ValueError('An employee cannot be their own manager')
        if not self.employee_repo.get_by_id(manager_id):
            raise ValueError('Manager not found')
        if employee_id is not None:
            managers = self.employee_repo.get_manager_map()
            if hierarchy.would_create_cycle(managers, employee_id, manager_id):
                raise ValueError('Manager assignment would create a reporting cycle')

    def visible(self, user, employees: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [e for e in employees if self.can_view(user, e)]

    def get_direct_reports(self, manager_id: int, viewer=None) -> List[Dict[str, Any]]:
        reports = self.employee_repo.get_direct_reports(manager_id)
        return self.visible(viewer, reports) if viewer is not None else reports

    def get_manager_chain(self, employee_id: int, viewer=None) -> List[Dict[str, Any]]:
        """Managers from the direct one upwards; with a viewer, only those they may see."""
        rows = self.employee_repo.get_chart_rows()
        by_id = {r['id']: r for r in rows}
        chain = hierarchy.manager_chain(hierarchy.manager_map(rows), employee_id)
        managers = [by_id[mid] for mid in chain if mid in by_id]
        return self.visible(viewer, managers) if viewer is not None else managers

    def get_org_chart(self, viewer=None) -> List[Dict[str, Any]]:
        """Org chart forest. With a viewer, hidden employees are left out and
        anyone whose manager is hidden becomes a root.
        """
        rows = self.employee_repo.get_chart_rows()
        if viewer is not None:
            rows = self.visible(viewer, rows)
        return hierarchy.build_org_chart(rows)

    def manages(self, manager_id: Optional[int], employee_id: int) -> bool:
        if manager_id is None:
            return False
        employee = self.employee_repo.get_by_id(employee_id)
        return bool(employee) and employee.get('manager_id') == manager_id

    # ============== Employees ==============

    def create_employee(self, data: Dict[str, Any], created_by_user_id: int = None) -> ServiceResult:
        """Create an employee, log onboarding and assign the default roles."""
        first_name = _clean(data.get('first_name') or '')
        last_name = _clean(data.get('last_name') or '')
        email = _clean(data.get('email') or '')
        if not first_name or not last_name or not email:
            return ServiceResult.fail('first_name, last_name and email are required')

        status = data.get('status') or 'active'
        if status not in _CREATE_STATUSES:
            return ServiceResult.fail(f"Invalid status for a new employee: {status}")

        manager_id = data.get('manager_id')
        try:
            self.validate_manager(None, manager_id)
        except ValueError as e:
            return ServiceResult.fail(str(e))

        try:
            employee_id = self.employee_repo.create(
                first_name=first_name, last_name=last_name, email=email,
                phone=_clean(data.get('phone')), position=_clean(data.get('position')),
                department_id=data.get('department_id'), manager_id=manager_id,
                hire_date=data.get('hire_date'), avatar=data.get('avatar'), status=status,
            )
        except ValueError as e:
            return ServiceResult.fail(str(e), 409)

        self.activity_repo.log_activity(
            employee_id, 'onboarding', 'New employee onboarding started',
            metadata={'created_by': created_by_user_id},
        )
        self.role_repo.assign_default_roles(employee_id, assigned_by=created_by_user_id)
        logger.info(f'Employee created: {first_name} {last_name} (id={employee_id})')
        return ServiceResult.ok({'id': employee_id})

    def update_employee(self, employee_id: int, data: Dict[str, Any],
                        acted_by: int = None) -> ServiceResult:
        """Apply a profile update. `acted_by` is the acting employee id."""
        employee = self.employee_repo.get_by_id(employee_id)
        if not employee:
            return ServiceResult.fail('Employee not found', 404)

        unknown = sorted(set(data) - set(_UPDATE_FIELDS))
        if unknown:
            return ServiceResult.fail(f"Unknown fields: {', '.join(unknown)}")
        fields = {k: _clean(v) for k, v in data.items()}
        for required in ('first_name', 'last_name', 'email'):
            if required in fields and not fields[required]:
                return ServiceResult.fail(f'{required} cannot be empty')

        if 'status' in fields:
            if fields['status'] not in EMPLOYEE_STATUSES:
                return ServiceResult.fail(f"Invalid status: {fields['status']}")
            try:
                validate_transition('employee', EMPLOYEE_TRANSITIONS,
                                    employee['status'], fields['status'])
            except ValueError as e:
                return ServiceResult.fail(str(e))

        if 'manager_id' in fields:
            try:
                self.validate_manager(employee_id, fields['manager_id'])
            except ValueError as e:
                return ServiceResult.fail(str(e))

        changed = [k for k, v in fields.items() if employee.get(k) != v]
        if not changed:
            return ServiceResult.ok({'updated_fields': []})

        try:
            self.employee_repo.update(employee_id, **{k: fields[k] for k in changed})
        except ValueError as e:
            return ServiceResult.fail(str(e), 409)

        diff = {k: fields[k] for k in changed}
        self.audit_repo.record('employees', employee_id, 'update', diff, acted_by)
        self.activity_repo.log_activity(
            employee_id, 'profile_update', f"Profile updated: {', '.join(changed)}",
            metadata={'fields': changed, 'updated_by': acted_by},
        )
        return ServiceResult.ok({'updated_fields': changed})
