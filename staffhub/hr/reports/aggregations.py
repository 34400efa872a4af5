"""Report aggregations.

Pure functions over lists of row dicts as returned by the repositories
(`created_at` / `closed_at` are ISO strings or datetimes). Keys in the
returned dicts are camelCase because dashboards consume them as-is.
"""
from datetime import datetime, timedelta, timezone

UNASSIGNED = 'Unassigned'


def _parse_ts(value):
    """ISO string or datetime -> naive UTC datetime (None if unparseable)."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        ts = value
    else:
        try:
            ts = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            return None
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _rate(part, whole):
    return round(part * 100 / whole, 1) if whole else 0


def count_by(rows, key, label_fn=None):
    """Group `rows` by `key` (a column name or callable), most frequent first.

    Returns `[{'name': label, 'count': n}, ...]`; ties are ordered by name.
    """
    getter = key if callable(key) else (lambda row: row.get(key))
    counts = {}
    labels = {}
    for row in rows:
        value = getter(row)
        counts[value] = counts.get(value, 0) + 1
        if value not in labels:
            label = label_fn(row) if label_fn else value
            labels[value] = UNASSIGNED if value is None or label in (None, '') else label
    groups = [{'name': labels[value], 'count': count} for value, count in counts.items()]
    return sorted(groups, key=lambda g: (-g['count'], str(g['name'])))


def growth(rows, period_days=30, now=None):
    """Percent change of rows created in the last period vs the one before.

    0 when the previous period has no rows.
    """
    now = now or _utcnow()
    current_start = now - timedelta(days=period_days)
    previous_start = current_start - timedelta(days=period_days)
    current = previous = 0
    for row in rows:
        created = _parse_ts(row.get('created_at'))
        if created is None:
            continue
        if current_start <= created <= now:
            current += 1
        elif previous_start <= created < current_start:
            previous += 1
    if not previous:
        return 0
    return round((current - previous) * 100 / previous, 1)


def dashboard_stats(employees, tickets, accesses, prior_period=30, now=None):
    live_access = [a for a in accesses if a.get('status') != 'revoked']
    active_access = [a for a in live_access if a.get('status') == 'active']
    return {
        'totalEmployees': len(employees),
        'pendingTickets': sum(1 for t in tickets if t.get('status') != 'closed'),
        'onboardingCount': sum(1 for e in employees if e.get('status') == 'onboarding'),
        'systemAccessRate': _rate(len(active_access), len(live_access)),
        'employeeGrowth': growth(employees, prior_period, now),
        'ticketGrowth': growth(tickets, prior_period, now),
        'accessGrowth': growth(accesses, prior_period, now),
    }


def system_access_stats(systems, accesses):
    """Per-system usage. `totalUsers` counts non-revoked entries."""
    by_system = {}
    for a in accesses:
        if a.get('status') == 'revoked':
            continue
        by_system.setdefault(a.get('system_id'), []).append(a)

    stats = []
    for system in systems:
        entries = by_system.get(system['id'], [])
        active = sum(1 for a in entries if a.get('status') == 'active')
        pending = sum(1 for a in entries if a.get('status') == 'pending')
        stats.append({
            'id': system['id'],
            'name': system['name'],
            'category': system.get('category'),
            'totalUsers': len(entries),
            'activeUsers': active,
            'pendingRequests': pending,
            'accessRate': _rate(active, len(entries)),
        })
    return stats


def employees_by_department(employees):
    return count_by(employees, 'department_id', label_fn=lambda e: e.get('department_name'))


def tickets_by_status(tickets):
    return count_by(tickets, 'status')


def tickets_by_type(tickets):
    return count_by(tickets, 'type')


def access_by_level(accesses):
    return count_by([a for a in accesses if a.get('status') != 'revoked'], 'access_level')


def access_by_system(accesses):
    return count_by([a for a in accesses if a.get('status') != 'revoked'], 'system_id',
                    label_fn=lambda a: a.get('system_name'))


def _person(prefix):
    def label(row):
        first = row.get(f'{prefix}_first_name')
        last = row.get(f'{prefix}_last_name')
        name = ' '.join(p for p in (first, last) if p)
        return name or None
    return label


def filter_tickets(tickets, filters):
    """Apply `status`, `type`, `priority`, `assignee_id`, `requestor_id`,
    `start_date` and `end_date` (inclusive, on created_at)."""
    filters = filters or {}
    start = _parse_ts(filters.get('start_date'))
    end = _parse_ts(filters.get('end_date'))
    if end is not None and end.time() == datetime.min.time():
        end = end + timedelta(days=1) - timedelta(microseconds=1)

    result = []
    for t in tickets:
        if any(filters.get(k) not in (None, '') and t.get(k) != filters[k]
               for k in ('status', 'type', 'priority', 'assignee_id', 'requestor_id')):
            continue
        created = _parse_ts(t.get('created_at'))
        if start is not None and (created is None or created < start):
            continue
        if end is not None and (created is None or created > end):
            continue
        result.append(t)
    return result


def average_resolution_hours(tickets):
    durations = []
    for t in tickets:
        if t.get('status') != 'closed':
            continue
        created = _parse_ts(t.get('created_at'))
        closed = _parse_ts(t.get('closed_at'))
        if created is None or closed is None or closed < created:
            continue
        durations.append((closed - created).total_seconds() / 3600)
    if not durations:
        return 0
    return round(sum(durations) / len(durations), 1)


def ticket_report(tickets, filters=None):
    selected = filter_tickets(tickets, filters)
    return {
        'total': len(selected),
        'byAssignee': count_by(selected, 'assignee_id', label_fn=_person('assignee')),
        'byRequester': count_by(selected, 'requestor_id', label_fn=_person('requestor')),
        'byCategory': count_by(selected, 'type'),
        'byStatus': count_by(selected, 'status'),
        'avgResolutionHours': average_resolution_hours(selected),
    }
