from unittest.mock import patch

import pytest
from django.db import DatabaseError

from tracker_app import lifecycle, store
from tracker_app.errors import NotFoundError
from tracker_app.models import Status
from tracker_user.models import Role

pytestmark = pytest.mark.django_db


class Recorder:
    def __init__(self):
        self.snapshots = []

    def __call__(self, snapshot):
        self.snapshots.append(snapshot)

    @property
    def last_titles(self):
        return [r.title for r in self.snapshots[-1]]


def test_get_unknown_raises_not_found():
    with pytest.raises(NotFoundError):
        store.projects.get('00000000-0000-0000-0000-000000000000')
    with pytest.raises(NotFoundError):
        store.tasks.get('not-a-uuid')


def test_queries(make_project, lecturer, student1, student2):
    mine = make_project(assigned_to=[student1.pk])
    theirs = make_project(title='Lab Report', assigned_to=[student2.pk])
    assert store.projects.created_by(lecturer.pk) == [mine, theirs]
    assert store.projects.assigned_to(student2.pk) == [theirs]
    assert store.users.with_role(Role.STUDENT) == [student1, student2]


def test_subscribe_delivers_initial_snapshot(make_project, lecturer):
    project = make_project()
    recorder = Recorder()
    with store.projects.subscribe({'created_by_id': lecturer.pk}, recorder):
        assert recorder.snapshots == [[project]]


def test_atomic_batch_arrives_as_one_snapshot(make_project, django_capture_on_commit_callbacks):
    project = make_project()
    recorder = Recorder()
    with store.tasks.subscribe({'project_id': project.pk}, recorder) as subscription:
        with django_capture_on_commit_callbacks(execute=True):
            lifecycle.create_task(project.pk, 'Collect sources', project.created_by_id)
        assert len(recorder.snapshots) == 2
        assert recorder.last_titles == ['Collect sources']
        assert subscription.active
    assert not subscription.active


def test_project_subscription_sees_status_flip(make_project, lecturer, django_capture_on_commit_callbacks):
    project = make_project()
    seen = []
    with store.projects.subscribe({'created_by_id': lecturer.pk}, lambda s: seen.append([p.status for p in s])):
        with django_capture_on_commit_callbacks(execute=True):
            lifecycle.create_task(project.pk, 'Collect sources', lecturer.pk)
    assert seen == [[Status.PENDING], [Status.IN_PROGRESS]]


def test_no_delivery_after_unsubscribe(make_project, django_capture_on_commit_callbacks):
    project = make_project()
    recorder = Recorder()
    subscription = store.tasks.subscribe({'project_id': project.pk}, recorder)
    subscription.unsubscribe()
    subscription.unsubscribe()
    with django_capture_on_commit_callbacks(execute=True):
        lifecycle.create_task(project.pk, 'Collect sources', project.created_by_id)
    assert len(recorder.snapshots) == 1


def test_rolled_back_write_is_not_delivered(make_project, django_capture_on_commit_callbacks):
    project = make_project()
    recorder = Recorder()
    with store.tasks.subscribe({'project_id': project.pk}, recorder):
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            with patch('tracker_app.lifecycle._bump', side_effect=DatabaseError('locked')):
                result = lifecycle.create_task(project.pk, 'Collect sources', project.created_by_id)
        assert not result.success
        assert callbacks == []
    assert len(recorder.snapshots) == 1


def test_subscription_released_when_block_raises(make_project):
    project = make_project()
    with pytest.raises(RuntimeError):
        with store.tasks.subscribe({'project_id': project.pk}, lambda s: None) as subscription:
            raise RuntimeError('view closed')
    assert not subscription.active


def test_comment_subscription(make_project, student1, django_capture_on_commit_callbacks):
    project = make_project(seed_tasks=['Literature Review'])
    task = project.tasks.get()
    recorder = Recorder()
    with store.comments.subscribe({'task_id': task.pk}, recorder):
        with django_capture_on_commit_callbacks(execute=True):
            lifecycle.add_comment(task.pk, student1.pk, student1.name, 'First note')
    assert [c.text for c in recorder.snapshots[-1]] == ['First note']
