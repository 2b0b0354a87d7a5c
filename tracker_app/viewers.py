"""
Role capability sets.

A viewer wraps the signed-in user and exposes only the operations that
role may perform. `viewer_for` is the single place a role is inspected;
everything behind it (lifecycle, store) is role-agnostic.
"""
from django.utils import timezone

from tracker_user.models import Role

from . import lifecycle, store, suggestions
from .assignments import priority_input
from .errors import NotFoundError, OperationResult, ValidationError
from .models import Status


class Viewer:
    role = None

    def __init__(self, user):
        self.user = user

    @property
    def user_id(self):
        return str(self.user.pk)

    def can(self, operation):
        return callable(getattr(self, operation, None))

    def update_task_status(self, task_id, new_status, expected_version=None):
        return lifecycle.update_task_status(task_id, new_status, self.user_id, expected_version=expected_version)

    def add_comment(self, task_id, text, user_image=None):
        return lifecycle.add_comment(task_id, self.user_id, self.user.name, text, user_image=user_image)

    def list_comments(self, task_id):
        return lifecycle.list_comments(task_id)

    def create_task(self, project_id, title, due_date=None, parent_id=None):
        return lifecycle.create_task(project_id, title, self.user_id, due_date=due_date, parent_id=parent_id)


class LecturerView(Viewer):
    role = Role.LECTURER

    def projects(self):
        return store.projects.created_by(self.user.pk)

    def subscribe_projects(self, on_change):
        return store.projects.subscribe({'created_by_id': self.user.pk}, on_change)

    def students(self):
        return store.users.with_role(Role.STUDENT)

    def subscribe_students(self, on_change):
        return store.users.subscribe({'role': Role.STUDENT}, on_change)

    def create_project(self, title, description, deadline, assigned_to, seed_tasks=None):
        return lifecycle.create_project(
            title, description, deadline, assigned_to, self.user_id, seed_tasks=seed_tasks
        )

    def delete_project(self, project_id):
        return lifecycle.delete_project(project_id, self.user_id)

    def update_project_status(self, project_id, new_status, expected_version=None):
        return lifecycle.update_project_status(project_id, new_status, self.user_id, expected_version=expected_version)

    def suggest_task_breakdown(self, title, description, client=None):
        return suggestions.suggest_task_breakdown(title, description, client=client)

    def suggest_priority(self, client=None):
        tasks, workloads = priority_input(self.projects(), self.students())
        if not tasks:
            return OperationResult.ok([])
        return suggestions.suggest_priority(tasks, workloads, client=client)


class StudentView(Viewer):
    role = Role.STUDENT

    def projects(self):
        return store.projects.assigned_to(self.user.pk)

    def subscribe_projects(self, on_change):
        return store.projects.subscribe({'assigned_to': self.user.pk}, on_change)

    def submit_project(self, project_id, expected_version=None):
        try:
            project = store.projects.get(project_id)
        except NotFoundError as e:
            return OperationResult.fail(e)
        if not lifecycle.all_tasks_completed(project.pk):
            return OperationResult.fail(
                ValidationError("All tasks must be completed before submitting.", field='status')
            )
        return lifecycle.submit_project(project_id, self.user_id, expected_version=expected_version)

    def suggest_order(self, workload_note='', client=None):
        active = [p for p in self.projects() if p.status != Status.COMPLETED]
        if not active:
            return OperationResult.ok({'prioritized_tasks': [], 'reasoning': ''})
        return suggestions.suggest_student_order(
            [p.title for p in active],
            [timezone.localtime(p.deadline).isoformat() for p in active],
            workload_note,
            client=client,
        )


def viewer_for(user):
    if user.role == Role.LECTURER:
        return LecturerView(user)
    return StudentView(user)
