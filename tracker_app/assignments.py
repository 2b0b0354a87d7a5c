"""
Assignment resolution and workload counts.

Everything here is a pure function over snapshots already in memory. The
project and user snapshots come from independent subscriptions and may be
out of step with each other, so ids that don't resolve are tolerated.
"""
from .models import Status

UNKNOWN_NAME = 'Unknown'


def _assignee_ids(project):
    # Accepts model instances as well as plain dicts from a pulled snapshot.
    if isinstance(project, dict):
        return [str(i) for i in project.get('assigned_to', [])]
    return [str(u.pk) for u in project.assigned_to.all()]


def _id(record):
    return str(record['id'] if isinstance(record, dict) else record.pk)


def _field(record, name):
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name)


def resolve_name(user_id, users):
    """Display name for an id, or "Unknown" when the user isn't in the snapshot."""
    for user in users:
        if _id(user) == str(user_id):
            return _field(user, 'name') or UNKNOWN_NAME
    return UNKNOWN_NAME


def compute_workloads(projects, students):
    """
    Count each student's projects that are not Completed.

    Every student in `students` appears in the result, with 0 when idle.
    Assignees that are not in `students` are ignored.
    """
    workloads = {_id(s): 0 for s in students}
    for project in projects:
        if _field(project, 'status') == Status.COMPLETED:
            continue
        for student_id in _assignee_ids(project):
            if student_id in workloads:
                workloads[student_id] += 1
    return workloads


def compute_task_workloads(tasks, projects, students):
    """Count each student's tasks that are not Completed, through the owning project's assignees."""
    assignees = {_id(p): _assignee_ids(p) for p in projects}
    workloads = {_id(s): 0 for s in students}
    for task in tasks:
        if _field(task, 'status') == Status.COMPLETED:
            continue
        project_id = _field(task, 'project') if isinstance(task, dict) else task.project_id
        for student_id in assignees.get(str(project_id), []):
            if student_id in workloads:
                workloads[student_id] += 1
    return workloads


def priority_input(projects, students):
    """
    Build the task and workload lists the priority suggestion expects.

    One entry per (active project, assignee) pair; the deadline is an ISO date.
    """
    workloads = compute_workloads(projects, students)
    items = []
    for project in projects:
        if _field(project, 'status') == Status.COMPLETED:
            continue
        deadline = _field(project, 'deadline')
        for student_id in _assignee_ids(project):
            items.append({
                'id': _id(project),
                'title': _field(project, 'title'),
                'description': _field(project, 'description') or '',
                'deadline': deadline.date().isoformat() if hasattr(deadline, 'date') else str(deadline),
                'assignee_id': student_id,
            })
    workload_list = [{'student_id': sid, 'active_count': count} for sid, count in workloads.items()]
    return items, workload_list
