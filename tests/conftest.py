from datetime import timedelta

import pytest
from django.utils import timezone

from tracker_user.models import Role, User


@pytest.fixture
def lecturer(db):
    return User.objects.create_user(username='lecturer', name='Dr. Ada', email='ada@uni.test', role=Role.LECTURER)


@pytest.fixture
def student1(db, lecturer):
    return User.objects.create_user(
        username='s1', name='Sam One', email='s1@uni.test', role=Role.STUDENT, supervising_lecturer=lecturer
    )


@pytest.fixture
def student2(db, lecturer):
    return User.objects.create_user(
        username='s2', name='Sue Two', email='s2@uni.test', role=Role.STUDENT, supervising_lecturer=lecturer
    )


@pytest.fixture
def deadline():
    return timezone.now() + timedelta(days=14)


@pytest.fixture
def make_project(lecturer, student1, deadline):
    """Create a project through the lifecycle and return the stored instance."""
    from tracker_app import lifecycle
    from tracker_app.models import Project

    def _make(title='Research Paper', description='Write a short research paper.', assigned_to=None,
              seed_tasks=None):
        result = lifecycle.create_project(
            title, description, deadline, assigned_to or [student1.pk], lecturer.pk, seed_tasks=seed_tasks
        )
        assert result.success, result.error
        return Project.objects.get(pk=result.value)

    return _make
