"""Reporting-hierarchy helpers.

Pure functions over a manager map (`{employee_id: manager_id}`) or a flat
employee list. Loops in the stored data never hang a walk: every walk
stops at the first employee it has already visited.
"""


def manager_map(employees):
    return {e['id']: e.get('manager_id') for e in employees}


def manager_chain(managers, employee_id):
    """Manager ids from the direct manager upwards."""
    chain = []
    seen = {employee_id}
    current = managers.get(employee_id)
    while current is not None and current not in seen:
        chain.append(current)
        seen.add(current)
        current = managers.get(current)
    return chain


def would_create_cycle(managers, employee_id, new_manager_id):
    """True if making `new_manager_id` the manager of `employee_id` closes a loop."""
    if new_manager_id is None:
        return False
    if new_manager_id == employee_id:
        return True
    return employee_id in manager_chain(managers, new_manager_id)


def manages(managers, manager_id, employee_id):
    """Direct-report check."""
    return manager_id is not None and managers.get(employee_id) == manager_id


def direct_reports(employees, manager_id):
    return [e for e in employees if e.get('manager_id') == manager_id]


def build_org_chart(employees):
    """Nest a flat employee list into a forest of `{employee, reports}` nodes.

    Employees without a manager, or whose manager is not in the list, are
    roots. Members of a manager loop with no way up to a root become roots
    themselves so that nobody drops out of the chart.
    """
    nodes = {e['id']: {'employee': e, 'reports': []} for e in employees}
    children = {}
    for e in employees:
        children.setdefault(e.get('manager_id'), []).append(e['id'])

    roots = []
    attached = set()

    def _attach_subtree(root):
        queue = [root]
        while queue:
            node = queue.pop(0)
            for child_id in children.get(node['employee']['id'], []):
                if child_id in attached:
                    continue
                attached.add(child_id)
                node['reports'].append(nodes[child_id])
                queue.append(nodes[child_id])

    for e in employees:
        manager_id = e.get('manager_id')
        if manager_id is None or manager_id not in nodes or manager_id == e['id']:
            roots.append(nodes[e['id']])
            attached.add(e['id'])
    for root in list(roots):
        _attach_subtree(root)

    for e in employees:
        if e['id'] not in attached:
            attached.add(e['id'])
            roots.append(nodes[e['id']])
            _attach_subtree(nodes[e['id']])

    return roots
