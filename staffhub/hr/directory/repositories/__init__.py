from .department_repository import DepartmentRepository
from .employee_repository import EmployeeRepository, EDITABLE_FIELDS

__all__ = ['DepartmentRepository', 'EmployeeRepository', 'EDITABLE_FIELDS']
