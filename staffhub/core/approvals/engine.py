"""ApprovalEngine - runs approval requests through the ordered steps of a flow.

Consuming modules (offboarding today) call submit() and react to the
hook events it fires; they never write approval tables themselves.

Request lifecycle:

    pending -> in_progress -> pending (next step) ... -> approved
                           -> rejected
                           -> on_hold (returned)  -> cancelled / resubmitted
    any live status        -> cancelled | expired
    pending/in_progress    -> escalated (step timeout)

Every status change goes through _transition(), which updates the row,
appends the audit entry and fires the hook event in that order.
"""
import logging

from core.base_repository import is_unique_violation
from . import hooks
from .condition_eval import ConditionEvaluator
from .repositories import FlowRepository, RequestRepository, DecisionRepository, AuditRepository
from .repositories.request_repo import LIVE_STATUSES

logger = logging.getLogger('staffhub.core.approvals.engine')

DECISIONS = ('approved', 'rejected', 'returned', 'abstained')
OPEN_STATUSES = ('pending', 'in_progress', 'escalated')
RESUBMITTABLE = ('rejected', 'on_hold', 'cancelled')

# entity_type -> reason; set by modules whose side effects cannot be replayed
_resubmit_refusals: dict[str, str] = {}


class ApprovalError(Exception):
    """Base class for approval workflow errors."""


class NoMatchingFlowError(ApprovalError):
    pass


class AlreadyPendingError(ApprovalError):
    pass


class NotAuthorizedError(ApprovalError):
    pass


class AlreadyDecidedError(ApprovalError):
    pass


class InvalidStateError(ApprovalError):
    pass


def refuse_resubmission(entity_type: str, reason: str):
    """Make resubmit() raise InvalidStateError for `entity_type`."""
    _resubmit_refusals[entity_type] = reason


def _event(req, **extra):
    payload = {
        'request_id': req['id'],
        'entity_type': req['entity_type'],
        'entity_id': req['entity_id'],
        'requested_by': req.get('requested_by'),
    }
    payload.update(extra)
    return payload


class ApprovalEngine:

    def __init__(self):
        self.flows = FlowRepository()
        self.requests = RequestRepository()
        self.decisions = DecisionRepository()
        self.audit = AuditRepository()

    # ============== Requests ==============

    def submit(self, entity_type, entity_id, context, requested_by):
        """Open a request on the first matching flow and place it on its first step.

        The first active flow (by priority) whose trigger conditions hold
        is used. Steps whose skip conditions hold are passed over; when
        every step is skipped the request is approved on the spot.
        """
        context = context or {}
        live_id = self.requests.live_request_id(entity_type, entity_id)
        if live_id:
            raise AlreadyPendingError(f'{entity_type} #{entity_id} already has open request #{live_id}')

        flow = next((f for f in self.flows.active_for(entity_type)
                     if ConditionEvaluator.evaluate(f.get('trigger_conditions'), context)), None)
        if flow is None:
            raise NoMatchingFlowError(f'No active approval flow for {entity_type}')

        try:
            request_id = self.requests.create(flow['id'], entity_type, entity_id, requested_by, context)
        except Exception as e:
            if is_unique_violation(e):
                raise AlreadyPendingError(f'{entity_type} #{entity_id} already has an open request')
            raise
        req = self.requests.get_by_id(request_id)
        self.audit.log(request_id, 'submitted', requested_by, {'flow': flow['name']})

        first = self._next_step(flow['id'], 0, context)
        if first is None:
            self._transition(req, 'approved', 'auto_approved', event='approval.approved',
                             details={'reason': 'every step skipped'}, auto_approved=True)
        else:
            self._enter_step(req, first)

        hooks.fire('approval.submitted', _event(req, flow_name=flow['name']))
        logger.info(f'Approval request #{request_id} submitted for {entity_type} #{entity_id}')
        return self.requests.get_by_id(request_id)

    def decide(self, request_id, decision, decided_by, comment=None):
        """Record `decided_by`'s decision on the current step.

        `rejected` closes the request and `returned` puts it on hold.
        `approved` moves to the next step once the step has
        `min_approvals` approvals; the last step approves the request.
        """
        if decision not in DECISIONS:
            raise InvalidStateError(f'Unknown decision: {decision}')
        req = self._load(request_id)
        if req['status'] not in OPEN_STATUSES:
            raise InvalidStateError(f"Request #{request_id} is {req['status']}")
        step = self.flows.step(req['current_step_id'])
        if step is None:
            raise InvalidStateError(f'Request #{request_id} has no current step')
        if not self.can_decide(step, decided_by):
            raise NotAuthorizedError(f"You are not an approver for step '{step['name']}'")
        if self.decisions.has_decided(request_id, step['id'], decided_by):
            raise AlreadyDecidedError(f"You already decided on step '{step['name']}'")

        try:
            self.decisions.record(request_id, step['id'], decided_by, decision, comment)
        except Exception as e:
            if is_unique_violation(e):
                raise AlreadyDecidedError(f"You already decided on step '{step['name']}'")
            raise
        self.audit.log(request_id, 'decided', decided_by,
                       {'decision': decision, 'step': step['name'], 'comment': comment})
        hooks.fire('approval.decided', _event(
            req, decision=decision, step_name=step['name'], decided_by=decided_by, comment=comment))

        if decision == 'rejected':
            self._transition(req, 'rejected', 'rejected', decided_by,
                             event='approval.rejected', note=comment)
        elif decision == 'returned':
            self._transition(req, 'on_hold', 'returned', decided_by,
                             event='approval.returned', note=comment)
        elif decision == 'approved' and self._step_complete(request_id, step):
            self._advance(req, step)
        elif req['status'] == 'pending':
            self.requests.set_status(request_id, 'in_progress')
        return self.requests.get_by_id(request_id)

    def cancel(self, request_id, cancelled_by, reason=None):
        req = self._load(request_id)
        if req['status'] not in LIVE_STATUSES:
            raise InvalidStateError(f"Request #{request_id} is {req['status']}")
        self._transition(req, 'cancelled', 'cancelled', cancelled_by,
                         event='approval.cancelled', note=reason)
        return self.requests.get_by_id(request_id)

    def resubmit(self, request_id, resubmitted_by, context=None):
        """Open a fresh request for the same entity.

        An on-hold request is closed as cancelled first so the entity is
        free again. The old context is reused unless a new one is given.
        """
        req = self._load(request_id)
        refusal = _resubmit_refusals.get(req['entity_type'])
        if refusal:
            raise InvalidStateError(refusal)
        if req['status'] not in RESUBMITTABLE:
            raise InvalidStateError(f"Request #{request_id} is {req['status']}")

        if req['status'] == 'on_hold':
            self._transition(req, 'cancelled', 'superseded', resubmitted_by,
                             note='Superseded by resubmission')
        self.audit.log(request_id, 'resubmitted', resubmitted_by)
        return self.submit(req['entity_type'], req['entity_id'],
                           context or req.get('context_snapshot') or {}, resubmitted_by)

    def escalate(self, request_id, reason='timeout'):
        """Hand the request to its step's escalation step. False when none is configured."""
        req = self._load(request_id)
        if req['status'] not in OPEN_STATUSES:
            raise InvalidStateError(f"Request #{request_id} is {req['status']}")
        step = self.flows.step(req['current_step_id'])
        target = self.flows.step(step.get('escalation_step_id')) if step else None
        if target is None:
            self.audit.log(request_id, 'escalation_skipped', details={
                'reason': reason, 'step': step['name'] if step else None})
            return False
        self._transition(req, 'escalated', 'escalated', event='approval.escalated',
                         details={'reason': reason, 'from_step': step['name'], 'to_step': target['name']},
                         fields={'current_step_id': target['id']}, step_name=target['name'], reason=reason)
        return True

    # ============== Queries ==============

    def get_pending_for_user(self, user_id):
        return self.requests.waiting_on(user_id)

    def get_queue_count(self, user_id):
        return self.requests.waiting_count(user_id)

    def get_history_for_entity(self, entity_type, entity_id):
        return self.requests.for_entity(entity_type, entity_id)

    def can_decide(self, step, user_id):
        if step.get('approver_user_id') == user_id:
            return True
        role = step.get('approver_role_name')
        return bool(role) and self.requests.has_role(user_id, role)

    def get_current_step_approvers(self, request_id):
        """User ids allowed to decide the request's current step."""
        req = self.requests.get_by_id(request_id)
        step = self.flows.step(req['current_step_id']) if req else None
        if step is None:
            return []
        user_ids = [step['approver_user_id']] if step.get('approver_user_id') else []
        if step.get('approver_role_name'):
            user_ids += [u for u in self.requests.role_member_ids(step['approver_role_name'])
                         if u not in user_ids]
        return user_ids

    # ============== Scheduler ==============

    def process_timeouts(self):
        """Escalate requests whose step timed out. Returns how many moved."""
        return self._each(self.requests.timed_out(), 'escalation',
                          lambda row: self.escalate(row['id']))

    def process_reminders(self):
        def remind(row):
            self.audit.log(row['id'], 'reminder_sent', details={'step': row['step_name']})
            hooks.fire('approval.reminder', _event(row, step_name=row['step_name']))
            return True
        return self._each(self.requests.due_for_reminder(), 'reminder', remind)

    def process_expirations(self):
        """Expire live requests past their flow's auto_reject_after_hours."""
        def expire(row):
            hours = row['auto_reject_after_hours']
            self._transition(row, 'expired', 'expired', event='approval.expired',
                             note=f'No decision within {hours}h')
            return True
        return self._each(self.requests.past_deadline(), 'expiration', expire)

    # ============== Internal ==============

    def _each(self, rows, label, action):
        done = 0
        for row in rows:
            try:
                if action(row):
                    done += 1
            except Exception as e:
                logger.error(f"Approval {label} failed for request #{row['id']}: {e}")
        return done

    def _load(self, request_id):
        req = self.requests.get_by_id(request_id)
        if req is None:
            raise InvalidStateError(f'Request #{request_id} not found')
        return req

    def _transition(self, req, status, action, actor_id=None, event=None, note=None,
                    details=None, fields=None, **payload):
        fields = dict(fields or {})
        if note is not None:
            fields['resolution_note'] = note
        self.requests.set_status(req['id'], status, **fields)
        self.audit.log(req['id'], action, actor_id, dict(details or {}, note=note) if note else details)
        if event:
            hooks.fire(event, _event(req, note=note, **payload))

    def _enter_step(self, req, step, previous=None):
        self._transition(
            req, 'pending', 'step_entered',
            event='approval.step_advanced' if previous else None,
            details={'step': step['name'], 'step_order': step['step_order'],
                     'from_step': previous['name'] if previous else None},
            fields={'current_step_id': step['id']}, step_name=step['name'])

    def _advance(self, req, step):
        context = req.get('context_snapshot') or {}
        following = self._next_step(req['flow_id'], step['step_order'], context)
        if following is None:
            self._transition(req, 'approved', 'approved', event='approval.approved',
                             details={'final_step': step['name']},
                             fields={'current_step_id': None})
        else:
            self._enter_step(req, following, previous=step)

    def _step_complete(self, request_id, step):
        return self.decisions.approvals_on_step(request_id, step['id']) >= (step.get('min_approvals') or 1)

    def _next_step(self, flow_id, after_order, context):
        """First step after `after_order` whose skip conditions do not hold."""
        for step in self.flows.steps(flow_id):
            if step['step_order'] <= after_order:
                continue
            skip = step.get('skip_conditions') or {}
            if skip and ConditionEvaluator.evaluate(skip, context):
                logger.debug(f"Skipping step '{step['name']}'")
                continue
            return step
        return None
