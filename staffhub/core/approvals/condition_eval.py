"""Evaluate JSONB condition maps against a context dict.

Flows use them as `trigger_conditions`, steps as `skip_conditions`:

    ConditionEvaluator.evaluate(
        {'access_count_gte': 3, 'department_id_in': [2, 5]},
        {'access_count': 4, 'department_id': 2},
    )  -> True

Key suffixes select the operator (`_gte _gt _lte _lt _eq _neq _in _not_in
_exists _contains`); a bare key means equality. All conditions are AND'd.
"""

import logging

logger = logging.getLogger('staffhub.core.approvals.conditions')

# Longest suffix first so `_not_in` wins over `_in` and `_gte` over `_gt`
_SUFFIXES = (
    '_not_in', '_contains', '_exists',
    '_gte', '_gt', '_lte', '_lt',
    '_neq', '_eq', '_in',
)


def _as_number(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _compare(actual, expected, op):
    a = _as_number(actual)
    e = _as_number(expected)
    if a is None or e is None:
        return False
    if op == 'gte':
        return a >= e
    if op == 'gt':
        return a > e
    if op == 'lte':
        return a <= e
    return a < e


class ConditionEvaluator:

    @staticmethod
    def evaluate(conditions, context):
        """True when every condition holds for `context` (empty means match)."""
        if not conditions:
            return True
        context = context or {}

        for key, expected in conditions.items():
            field, op = ConditionEvaluator.parse_key(key)
            if not ConditionEvaluator._check(field, op, expected, context):
                logger.debug(f'Condition {key}={expected!r} failed')
                return False
        return True

    @staticmethod
    def parse_key(key):
        """'access_count_gte' -> ('access_count', 'gte'); bare keys -> (key, None)."""
        for suffix in _SUFFIXES:
            if key.endswith(suffix) and len(key) > len(suffix):
                return key[:-len(suffix)], suffix[1:]
        return key, None

    @staticmethod
    def _check(field, op, expected, context):
        if op == 'exists':
            return (field in context) == bool(expected)

        actual = context.get(field)

        if op is None or op == 'eq':
            return actual == expected
        if op == 'neq':
            return actual != expected
        if op in ('gte', 'gt', 'lte', 'lt'):
            return _compare(actual, expected, op)
        if op == 'in':
            return isinstance(expected, list) and actual in expected
        if op == 'not_in':
            return isinstance(expected, list) and actual not in expected
        if op == 'contains':
            if actual is None or expected is None:
                return False
            return str(expected) in str(actual)
        return False
