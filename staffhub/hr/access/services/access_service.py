"""Access Service - request, grant and revoke system access.

Every status change is checked against ACCESS_TRANSITIONS and leaves a
`system_access` activity on the employee's feed.
"""
import logging
from typing import Dict, Any

from core.services import ServiceResult
from hr.activity.repositories import ActivityRepository
from hr.status import ACCESS_LEVELS, ACCESS_STATUSES, ACCESS_TRANSITIONS, validate_transition
from ..repositories import SystemRepository, AccessRepository

logger = logging.getLogger('staffhub.hr.access.service')


class AccessService:

    def __init__(self):
        self.system_repo = SystemRepository()
        self.access_repo = AccessRepository()
        self.activity_repo = ActivityRepository()

    def _log(self, employee_id, description, access_id, system_id, **extra):
        self.activity_repo.log_activity(
            employee_id, 'system_access', description,
            metadata=dict({'access_id': access_id, 'system_id': system_id}, **extra),
        )

    def request_access(self, employee_id: int, system_id: int, access_level: str = 'read',
                       expires_at=None) -> ServiceResult:
        """Create a pending access entry."""
        if access_level not in ACCESS_LEVELS:
            return ServiceResult.fail(f'Invalid access level: {access_level}')
        system = self.system_repo.get_by_id(system_id)
        if not system:
            return ServiceResult.fail('System not found', 404)
        try:
            access_id = self.access_repo.create(employee_id, system_id, access_level, expires_at)
        except ValueError as e:
            return ServiceResult.fail(str(e), 409)
        self._log(employee_id, f"Requested access to {system['name']}", access_id, system_id,
                  access_level=access_level)
        return ServiceResult.ok({'id': access_id})

    def update_access(self, access_id: int, data: Dict[str, Any],
                      acting_employee_id: int = None) -> ServiceResult:
        """Change status, access level or expiry of an entry."""
        entry = self.access_repo.get_by_id(access_id)
        if not entry:
            return ServiceResult.fail('Access entry not found', 404)

        fields = {k: data[k] for k in ('access_level', 'expires_at') if k in data}
        if 'access_level' in fields and fields['access_level'] not in ACCESS_LEVELS:
            return ServiceResult.fail(f"Invalid access level: {fields['access_level']}")

        current = entry['status']
        target = data.get('status', current)
        if target not in ACCESS_STATUSES:
            return ServiceResult.fail(f'Invalid status: {target}')
        try:
            validate_transition('access', ACCESS_TRANSITIONS, current, target)
        except ValueError as e:
            return ServiceResult.fail(str(e))

        if fields and current == 'revoked' and target == 'revoked':
            return ServiceResult.fail('Cannot modify a revoked access entry')
        if (current == 'revoked' and target == 'pending'
                and self.access_repo.get_live(entry['employee_id'], entry['system_id'])):
            return ServiceResult.fail(
                'Employee already has access or a pending request for this system', 409)

        if fields:
            self.access_repo.update_fields(access_id, **fields)

        if target != current:
            if target == 'active':
                self.access_repo.grant(access_id, granted_by_id=acting_employee_id)
                self._log(entry['employee_id'], f"Access granted to {entry['system_name']}",
                          access_id, entry['system_id'], granted_by=acting_employee_id)
            elif target == 'revoked':
                self.access_repo.revoke(access_id)
                self._log(entry['employee_id'], f"Access revoked from {entry['system_name']}",
                          access_id, entry['system_id'], revoked_by=acting_employee_id)
            else:
                self.access_repo.reopen(access_id)
                self._log(entry['employee_id'], f"Requested access to {entry['system_name']}",
                          access_id, entry['system_id'])

        return ServiceResult.ok(self.access_repo.get_by_id(access_id))

    def revoke_all_for_employee(self, employee_id: int) -> int:
        revoked = self.access_repo.revoke_all_for_employee(employee_id)
        for row in revoked:
            self._log(employee_id, f"Access revoked from {row['system_name']}",
                      row['id'], row['system_id'], reason='offboarding')
        return len(revoked)

    def revoke_expired(self) -> int:
        revoked = self.access_repo.revoke_expired()
        for row in revoked:
            self._log(row['employee_id'], f"Access revoked from {row['system_name']}",
                      row['id'], row['system_id'], reason='expired')
        if revoked:
            logger.info(f'Revoked {len(revoked)} expired access entries')
        return len(revoked)
