"""
Project and task lifecycle.

Every state change of a project or task goes through this module. Each
public operation runs its writes inside one `transaction.atomic()` block,
so multi-record effects (seed tasks, the Pending -> In Progress flip on the
first task, cascade deletes, activity log entries) are applied together or
not at all. Operations never raise to the caller: they return an
`OperationResult` carrying either the value or one of the errors from
`tracker_app.errors`.
"""
import datetime
import logging
from functools import wraps

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, transaction
from django.utils import timezone

from tracker_user.models import Role

from . import store
from .errors import ConflictError, NotFoundError, OperationResult, StoreError, TrackerError, ValidationError
from .models import STATUS_ORDER, ActivityLog, Comment, DeletedRecord, Project, Status, Task

logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 3
MIN_DESCRIPTION_LENGTH = 10
DUE_SOON_DAYS = 3


def lifecycle_operation(name):
    """Turn raised tracker and database errors into a failed OperationResult."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                value = func(*args, **kwargs)
            except StoreError as e:
                logger.error("%s failed: %s", name, e.message)
                return OperationResult.fail(e)
            except TrackerError as e:
                logger.warning("%s rejected: %s", name, e.message)
                return OperationResult.fail(e)
            except DatabaseError as e:
                # The atomic block has already rolled back at this point.
                logger.error("%s failed in the store: %s", name, e, exc_info=True)
                return OperationResult.fail(StoreError(str(e)))
            logger.info("%s succeeded", name)
            return OperationResult.ok(value)
        return wrapper
    return decorator


# -----------------------------
# Validation helpers
# -----------------------------

def _clean_title(title, field='title'):
    title = (title or '').strip()
    if len(title) < MIN_TITLE_LENGTH:
        raise ValidationError(f"Title must be at least {MIN_TITLE_LENGTH} characters.", field=field)
    return title


def _aware(value):
    if value is not None and timezone.is_naive(value):
        return timezone.make_aware(value, datetime.timezone.utc)
    return value


def _clean_datetime(value, field):
    if value is None:
        return None
    if not isinstance(value, datetime.datetime):
        raise ValidationError(f"{field} must be a date and time.", field=field)
    return _aware(value)


def _clean_status(new_status):
    if new_status not in Status.values:
        raise ValidationError(f"Unknown status '{new_status}'", field='status')
    return new_status


def _resolve_students(assigned_to):
    ids = list(dict.fromkeys(str(i) for i in (assigned_to or [])))
    if not ids:
        raise ValidationError("Please assign this project to at least one student.", field='assigned_to')
    found = {}
    for user_id in ids:
        if store.users.exists(user_id):
            user = store.users.get(user_id)
            if user.role == Role.STUDENT:
                found[user_id] = user
    missing = [i for i in ids if i not in found]
    if missing:
        raise ValidationError(f"Unknown student id(s): {', '.join(missing)}", field='assigned_to')
    return [found[i] for i in ids]


def _check_version(record, expected_version):
    if expected_version is not None and record.version != expected_version:
        raise ConflictError(
            f"{type(record).__name__} '{record.pk}' was changed by someone else "
            f"(expected version {expected_version}, found {record.version})"
        )


def _locked(model, pk):
    try:
        return model.objects.select_for_update().get(pk=pk)
    except (model.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError(f"{model.__name__} '{pk}' not found")


def _log_activity(action, user_id, project_id=None, task_id=None):
    return ActivityLog.objects.create(
        action=action,
        user_id=str(user_id),
        project_id=str(project_id) if project_id else None,
        task_id=str(task_id) if task_id else None,
    )


def _bump(record, *fields):
    record.version += 1
    record.save(update_fields=[*fields, 'version', 'updated_at'])


# -----------------------------
# Projects
# -----------------------------

@lifecycle_operation('create_project')
def create_project(title, description, deadline, assigned_to, created_by, seed_tasks=None, now=None):
    """
    Create a project and, optionally, its first tasks in one atomic write.

    Args:
        title (str): At least 3 characters.
        description (str): At least 10 characters.
        deadline (datetime): Must not be in the past.
        assigned_to (iterable): Non-empty collection of student ids.
        created_by (str): Id of the creating lecturer.
        seed_tasks (list): Ordered task titles persisted with the project.
        now (datetime): Reference time for the deadline check, defaults to the current time.

    Returns:
        OperationResult: value is the new project id. With seed tasks the
        project starts In Progress, otherwise Pending.
    """
    title = _clean_title(title)
    description = (description or '').strip()
    if len(description) < MIN_DESCRIPTION_LENGTH:
        raise ValidationError(
            f"Description must be at least {MIN_DESCRIPTION_LENGTH} characters.", field='description'
        )
    if deadline is None:
        raise ValidationError("A deadline is required.", field='deadline')
    deadline = _clean_datetime(deadline, 'deadline')
    if deadline < (now or timezone.now()):
        raise ValidationError("Deadline cannot be in the past.", field='deadline')
    seed_titles = [_clean_title(t, field='seed_tasks') for t in (seed_tasks or [])]
    students = _resolve_students(assigned_to)
    creator = store.users.get(created_by)

    with transaction.atomic():
        project = Project.objects.create(
            title=title,
            description=description,
            deadline=deadline,
            created_by=creator,
            status=Status.IN_PROGRESS if seed_titles else Status.PENDING,
        )
        project.assigned_to.set(students)
        for seed_title in seed_titles:
            Task.objects.create(project=project, title=seed_title, status=Status.PENDING, created_by=creator)
        names = ', '.join(s.name for s in students)
        _log_activity(f'Project "{title}" created and assigned to {names}', creator.pk, project_id=project.pk)

    logger.debug("Project %s created with %d seed task(s)", project.pk, len(seed_titles))
    return str(project.pk)


@lifecycle_operation('delete_project')
def delete_project(project_id, requesting_user_id):
    """
    Delete a project together with its tasks and their comments.

    Permission to delete is the caller's concern; this only guarantees that
    nothing is left behind.
    """
    with transaction.atomic():
        project = _locked(Project, project_id)
        task_ids = list(Task.objects.filter(project=project).values_list('id', flat=True))
        comment_ids = list(Comment.objects.filter(task_id__in=task_ids).values_list('id', flat=True))

        Comment.objects.filter(id__in=comment_ids).delete()
        # Subtasks first so the parent foreign key never points at a removed row.
        Task.objects.filter(project=project, parent__isnull=False).delete()
        Task.objects.filter(project=project).delete()

        audience = [project.created_by_id, *project.assigned_to.values_list('id', flat=True)]
        tombstones = (
            [('comments', i) for i in comment_ids]
            + [('tasks', i) for i in task_ids]
            + [('projects', project.pk)]
        )
        for collection, record_id in tombstones:
            record = DeletedRecord.objects.create(collection=collection, record_id=str(record_id))
            record.audience.set(audience)
        _log_activity(f'Project "{project.title}" deleted', requesting_user_id, project_id=project.pk)
        project.delete()

    logger.debug("Deleted project %s with %d task(s) and %d comment(s)", project_id, len(task_ids), len(comment_ids))
    return None


def _set_project_status(project_id, new_status, acting_user_id, expected_version=None):
    new_status = _clean_status(new_status)
    with transaction.atomic():
        project = _locked(Project, project_id)
        _check_version(project, expected_version)
        if getattr(settings, 'TRACKER_ENFORCE_MONOTONIC_STATUS', False):
            if STATUS_ORDER[new_status] < STATUS_ORDER[project.status]:
                raise ValidationError(
                    f"Cannot move a project from {project.status} back to {new_status}.", field='status'
                )
        project.status = new_status
        _bump(project, 'status')
        _log_activity(
            f'Status of project "{project.title}" changed to {new_status}', acting_user_id, project_id=project.pk
        )
    return None


@lifecycle_operation('update_project_status')
def update_project_status(project_id, new_status, acting_user_id, expected_version=None):
    """Overwrite a project's status. Transitions are not checked unless monotonic enforcement is on."""
    return _set_project_status(project_id, new_status, acting_user_id, expected_version)


@lifecycle_operation('submit_project')
def submit_project(project_id, acting_user_id, expected_version=None):
    """Mark a project Completed. Callers gate this on `all_tasks_completed`."""
    return _set_project_status(project_id, Status.COMPLETED, acting_user_id, expected_version)


# -----------------------------
# Tasks
# -----------------------------

@lifecycle_operation('create_task')
def create_task(project_id, title, created_by, due_date=None, parent_id=None):
    """
    Add a task or subtask to a project.

    The first task added to a Pending project moves the project to
    In Progress in the same transaction.

    Returns:
        OperationResult: value is the new task id.
    """
    title = _clean_title(title)
    due_date = _clean_datetime(due_date, 'due_date')
    creator = store.users.get(created_by)

    with transaction.atomic():
        project = _locked(Project, project_id)
        if due_date is not None and due_date > project.deadline:
            raise ValidationError("Due date cannot be after the project deadline.", field='due_date')

        parent = None
        if parent_id:
            parent = _locked(Task, parent_id)
            if parent.project_id != project.pk:
                raise ValidationError("Parent task belongs to a different project.", field='parent_id')
            if parent.parent_id is not None:
                raise ValidationError("Subtasks cannot have subtasks of their own.", field='parent_id')

        task = Task.objects.create(
            project=project,
            parent=parent,
            title=title,
            status=Status.PENDING,
            created_by=creator,
            due_date=due_date,
        )
        if project.status == Status.PENDING:
            project.status = Status.IN_PROGRESS
            _bump(project, 'status')
            logger.debug("Project %s started by its first task", project.pk)

    return str(task.pk)


@lifecycle_operation('update_task_status')
def update_task_status(task_id, new_status, acting_user_id, expected_version=None):
    """Overwrite a task's status. Any transition is allowed; the project is left untouched."""
    new_status = _clean_status(new_status)
    with transaction.atomic():
        task = _locked(Task, task_id)
        _check_version(task, expected_version)
        task.status = new_status
        _bump(task, 'status')
        _log_activity(
            f'Status of task "{task.title}" changed to {new_status}',
            acting_user_id,
            project_id=task.project_id,
            task_id=task.pk,
        )
    return None


# -----------------------------
# Comments
# -----------------------------

@lifecycle_operation('add_comment')
def add_comment(task_id, user_id, user_name, text, user_image=None):
    text = (text or '').strip()
    if not text:
        raise ValidationError("Comment cannot be empty.", field='text')
    task = store.tasks.get(task_id)
    comment = Comment.objects.create(
        task=task,
        user_id=str(user_id),
        user_name=user_name,
        user_image=user_image or None,
        text=text,
    )
    return str(comment.pk)


@lifecycle_operation('list_comments')
def list_comments(task_id):
    """Comments for a task, oldest first."""
    task = store.tasks.get(task_id)
    return store.comments.for_task(task.pk)


# -----------------------------
# Derived state
# -----------------------------

def all_tasks_completed(project_id):
    statuses = list(Task.objects.filter(project_id=project_id).values_list('status', flat=True))
    return bool(statuses) and all(s == Status.COMPLETED for s in statuses)


def task_tree(project_id):
    """
    Group a project's tasks into (task, subtasks) pairs, oldest first.

    Subtasks whose parent is missing from the snapshot are shown at the top level.
    """
    tasks = store.tasks.for_project(project_id)
    top_level = {t.pk: (t, []) for t in tasks if t.parent_id is None}
    orphans = []
    for t in tasks:
        if t.parent_id is None:
            continue
        if t.parent_id in top_level:
            top_level[t.parent_id][1].append(t)
        else:
            orphans.append((t, []))
    tree = list(top_level.values()) + orphans
    tree.sort(key=lambda pair: pair[0].created_at)
    return tree


def deadline_state(deadline, status, now=None):
    """
    Classify a deadline for display.

    Returns:
        tuple: (state, days) where state is "overdue", "due_soon" or
        "on_track" and days is whole days until the deadline, truncated
        toward zero. Completed work is always "on_track".
    """
    now = now or timezone.now()
    days = int((_aware(deadline) - now).total_seconds() / 86400)
    if status == Status.COMPLETED:
        return 'on_track', days
    if days < 0:
        return 'overdue', days
    if days <= DUE_SOON_DAYS:
        return 'due_soon', days
    return 'on_track', days
