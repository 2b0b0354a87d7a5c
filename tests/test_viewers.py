import pytest

from tracker_app.errors import NotFoundError
from tracker_app.models import Status
from tracker_app.viewers import LecturerView, StudentView, viewer_for

pytestmark = pytest.mark.django_db


def test_viewer_for_role(lecturer, student1):
    assert isinstance(viewer_for(lecturer), LecturerView)
    assert isinstance(viewer_for(student1), StudentView)


@pytest.mark.parametrize('operation', ['create_project', 'delete_project', 'update_project_status',
                                       'suggest_task_breakdown', 'suggest_priority'])
def test_student_lacks_lecturer_operations(student1, operation):
    viewer = viewer_for(student1)
    assert not viewer.can(operation)
    assert not hasattr(viewer, operation)


def test_lecturer_lacks_submit(lecturer):
    assert not viewer_for(lecturer).can('submit_project')


def test_shared_operations(lecturer, student1):
    for user in (lecturer, student1):
        viewer = viewer_for(user)
        assert viewer.can('create_task')
        assert viewer.can('update_task_status')
        assert viewer.can('add_comment')


def test_lecturer_project_subscription(lecturer, student1, deadline):
    viewer = viewer_for(lecturer)
    seen = []
    with viewer.subscribe_projects(seen.append):
        pass
    assert seen == [[]]
    result = viewer.create_project('Research Paper', 'Write a short research paper.', deadline, [student1.pk])
    assert result.success
    assert [p.title for p in viewer.projects()] == ['Research Paper']


def test_comment_uses_viewer_identity(student1, make_project):
    project = make_project(seed_tasks=['Literature Review'])
    viewer = viewer_for(student1)
    task = project.tasks.get()
    assert viewer.add_comment(task.pk, 'On it').success
    comment = viewer.list_comments(task.pk).value[0]
    assert (comment.user_id, comment.user_name) == (str(student1.pk), 'Sam One')


def test_student_submit_needs_tasks(student1, make_project):
    project = make_project()
    result = viewer_for(student1).submit_project(project.pk)
    assert not result.success
    project.refresh_from_db()
    assert project.status == Status.PENDING


def test_lecturer_priority_without_active_projects(lecturer):
    result = viewer_for(lecturer).suggest_priority()
    assert result.success
    assert result.value == []


@pytest.mark.parametrize('project_id', ['00000000-0000-0000-0000-000000000000', 'nope'])
def test_student_submit_unknown_project(student1, project_id):
    result = viewer_for(student1).submit_project(project_id)
    assert not result.success
    assert isinstance(result.error, NotFoundError)
