# tracker_app/models.py
import uuid

from django.conf import settings
from django.db import models


class Status(models.TextChoices):
    PENDING = 'Pending', 'Pending'
    IN_PROGRESS = 'In Progress', 'In Progress'
    COMPLETED = 'Completed', 'Completed'


# Position of each status in the Pending -> In Progress -> Completed order.
STATUS_ORDER = {
    Status.PENDING: 0,
    Status.IN_PROGRESS: 1,
    Status.COMPLETED: 2,
}


class Project(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4)
    title = models.CharField(max_length=200)
    description = models.TextField()
    deadline = models.DateTimeField()
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='created_projects'
    )
    assigned_to = models.ManyToManyField(settings.AUTH_USER_MODEL, related_name='assigned_projects')
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    grade = models.FloatField(null=True, blank=True)
    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['created_at']

    def __str__(self):
        return self.title


class Task(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4)
    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='tasks')
    # One level of nesting only: a subtask's parent never has a parent itself.
    parent = models.ForeignKey(
        'self', on_delete=models.CASCADE, null=True, blank=True, related_name='subtasks'
    )
    title = models.CharField(max_length=200)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='created_tasks'
    )
    due_date = models.DateTimeField(null=True, blank=True)
    grade = models.FloatField(null=True, blank=True)
    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['created_at']

    def __str__(self):
        return self.title


class Comment(models.Model):
    """Append-only note on a task."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4)
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='comments')
    user_id = models.CharField(max_length=64)
    user_name = models.CharField(max_length=150)
    user_image = models.URLField(null=True, blank=True)
    text = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at']


class ActivityLog(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4)
    action = models.CharField(max_length=500)
    user_id = models.CharField(max_length=64)
    project_id = models.CharField(max_length=64, null=True, blank=True)
    task_id = models.CharField(max_length=64, null=True, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['timestamp']


class DeletedRecord(models.Model):
    """Tombstone left by a hard delete so pulling clients can drop the record."""
    collection = models.CharField(max_length=20)
    record_id = models.CharField(max_length=64)
    deleted_at = models.DateTimeField(auto_now_add=True)
    # Users who could see the record; only they receive the tombstone on pull.
    audience = models.ManyToManyField(settings.AUTH_USER_MODEL, related_name='tombstones', blank=True)

    class Meta:
        ordering = ['deleted_at']
