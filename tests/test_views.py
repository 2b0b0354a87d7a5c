from unittest.mock import patch

import pytest
from rest_framework.test import APIClient

from tracker_app import lifecycle
from tracker_app.errors import AIAdapterError, OperationResult
from tracker_app.models import Project, Status, Task
from tracker_user.models import Role, User

pytestmark = pytest.mark.django_db


@pytest.fixture
def api():
    def _client(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client
    return _client


def test_lecturer_creates_project_with_seed_tasks(api, lecturer, student1, student2, deadline):
    resp = api(lecturer).post('/api/projects/', {
        'title': 'Research Paper',
        'description': 'Write a short research paper.',
        'deadline': deadline.isoformat(),
        'assigned_to': [str(student1.pk), str(student2.pk)],
        'seed_tasks': ['Literature Review', 'Draft Outline'],
    }, format='json')
    assert resp.status_code == 201
    project = Project.objects.get(pk=resp.data['value'])
    assert project.status == Status.IN_PROGRESS
    assert project.tasks.count() == 2


def test_validation_error_carries_field(api, lecturer, student1, deadline):
    resp = api(lecturer).post('/api/projects/', {
        'title': 'Research Paper',
        'description': 'short',
        'deadline': deadline.isoformat(),
        'assigned_to': [str(student1.pk)],
    }, format='json')
    assert resp.status_code == 400
    assert resp.data['error']['field'] == 'description'


def test_student_cannot_create_or_delete_projects(api, student1, make_project, deadline):
    client = api(student1)
    resp = client.post('/api/projects/', {'title': 'Mine', 'description': 'x' * 20,
                                          'deadline': deadline.isoformat(), 'assigned_to': [str(student1.pk)]},
                       format='json')
    assert resp.status_code == 403
    project = make_project()
    assert client.delete(f'/api/projects/{project.pk}/').status_code == 403
    assert Project.objects.filter(pk=project.pk).exists()


def test_lecturer_cannot_submit(api, lecturer, make_project):
    project = make_project(seed_tasks=['Literature Review'])
    assert api(lecturer).post(f'/api/projects/{project.pk}/submit/', {}, format='json').status_code == 403


def test_project_lists_follow_role(api, lecturer, student1, student2, make_project):
    make_project(assigned_to=[student1.pk])
    make_project(title='Lab Report', assigned_to=[student2.pk])
    assert len(api(lecturer).get('/api/projects/').data) == 2
    titles = [p['title'] for p in api(student2).get('/api/projects/').data]
    assert titles == ['Lab Report']


def test_task_flow_and_submit(api, student1, make_project):
    project = make_project()
    client = api(student1)
    resp = client.post(f'/api/projects/{project.pk}/tasks/', {'title': 'Collect sources'}, format='json')
    assert resp.status_code == 201
    task_id = resp.data['value']
    project.refresh_from_db()
    assert project.status == Status.IN_PROGRESS

    early = client.post(f'/api/projects/{project.pk}/submit/', {}, format='json')
    assert early.status_code == 400

    assert client.post(f'/api/tasks/{task_id}/status/', {'status': 'Completed'}, format='json').status_code == 200
    assert client.post(f'/api/projects/{project.pk}/submit/', {}, format='json').status_code == 200
    project.refresh_from_db()
    assert project.status == Status.COMPLETED


def test_version_conflict_is_409(api, student1, make_project):
    project = make_project(seed_tasks=['Literature Review'])
    task = project.tasks.get()
    client = api(student1)
    url = f'/api/tasks/{task.pk}/status/'
    assert client.post(url, {'status': 'In Progress', 'expected_version': 1}, format='json').status_code == 200
    resp = client.post(url, {'status': 'Completed', 'expected_version': 1}, format='json')
    assert resp.status_code == 409
    assert resp.data['error']['code'] == 'conflict'


def test_unknown_task_is_404(api, student1):
    resp = api(student1).post('/api/tasks/00000000-0000-0000-0000-000000000000/status/',
                              {'status': 'Completed'}, format='json')
    assert resp.status_code == 404


def test_comments(api, student1, make_project):
    project = make_project(seed_tasks=['Literature Review'])
    task = project.tasks.get()
    client = api(student1)
    resp = client.post(f'/api/tasks/{task.pk}/comments/', {'text': 'Reading now'}, format='json')
    assert resp.status_code == 201
    listed = client.get(f'/api/tasks/{task.pk}/comments/').data
    assert [(c['text'], c['user_name']) for c in listed] == [('Reading now', 'Sam One')]


def test_lecturer_deletes_project(api, lecturer, make_project):
    project = make_project(seed_tasks=['Literature Review'])
    resp = api(lecturer).delete(f'/api/projects/{project.pk}/')
    assert resp.status_code == 200
    assert not Project.objects.exists()
    assert not Task.objects.exists()


def test_sync_pull_includes_deletions(api, lecturer, student1, make_project):
    keep = make_project(seed_tasks=['Literature Review'])
    gone = make_project(title='Lab Report', seed_tasks=['Run experiment'])
    gone_task = str(gone.tasks.get().pk)
    lifecycle.delete_project(gone.pk, lecturer.pk)

    resp = api(student1).get('/api/sync/')
    assert resp.status_code == 200
    changes = resp.data['changes']
    assert [p['id'] for p in changes['projects']['created']] == [str(keep.pk)]
    assert changes['projects']['deleted'] == [str(gone.pk)]
    assert changes['tasks']['deleted'] == [gone_task]
    assert isinstance(resp.data['timestamp'], int)


def test_user_sync_filters_by_role(api, lecturer, student1, student2):
    resp = api(lecturer).get('/api/users/sync/', {'role': 'student'})
    assert resp.status_code == 200
    names = [u['name'] for u in resp.data['changes']['users']['created']]
    assert names == ['Sam One', 'Sue Two']
    assert api(lecturer).get('/api/users/sync/', {'role': 'admin'}).status_code == 400


def test_breakdown_suggestion_failure_is_502(api, lecturer):
    failure = OperationResult.fail(AIAdapterError('Could not generate suggestions.'))
    with patch('tracker_app.viewers.suggestions.suggest_task_breakdown', return_value=failure):
        resp = api(lecturer).post('/api/suggestions/breakdown/',
                                  {'title': 'Research Paper', 'description': 'Write a paper'}, format='json')
    assert resp.status_code == 502
    assert resp.data['error']['message'] == 'Could not generate suggestions.'


def test_student_priority_request_uses_ordering(api, student1, make_project):
    make_project()
    with patch('tracker_app.viewers.suggestions.suggest_student_order',
               return_value=OperationResult.ok({'prioritized_tasks': ['Research Paper'], 'reasoning': 'only one'})) as mocked:
        resp = api(student1).post('/api/suggestions/priority/', {'workload': 'part-time job'}, format='json')
    assert resp.status_code == 200
    assert resp.data['value']['prioritized_tasks'] == ['Research Paper']
    assert mocked.call_args.args[2] == 'part-time job'


def test_sync_pull_hides_other_peoples_deletions(api, lecturer, student1, student2, make_project):
    gone = make_project(seed_tasks=['Literature Review'], assigned_to=[student1.pk])
    lifecycle.delete_project(gone.pk, lecturer.pk)
    outsider = User.objects.create_user(username='lecturer2', name='Dr. Bo', role=Role.LECTURER)

    for user in (student2, outsider):
        changes = api(user).get('/api/sync/').data['changes']
        assert changes['projects']['deleted'] == []
        assert changes['tasks']['deleted'] == []
    assert api(lecturer).get('/api/sync/').data['changes']['projects']['deleted'] == [str(gone.pk)]
