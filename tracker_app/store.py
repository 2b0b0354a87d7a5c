"""
Entity store: repositories over the tracker collections.

Each repository answers equality and membership queries and offers push
subscriptions. A subscription receives the full snapshot of matching
records once when it is opened and again after every committed write that
changes that snapshot. Writes made inside `transaction.atomic()` are seen
only after the commit, so an atomic batch arrives as one snapshot and a
rolled-back batch produces none.
"""
import logging
import threading

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models.signals import m2m_changed, post_delete, post_save

from .errors import NotFoundError
from .models import Comment, Project, Task

logger = logging.getLogger(__name__)


class Subscription:
    """Handle for a live query. Use as a context manager or call `unsubscribe()`."""

    def __init__(self, repository, lookup, on_change):
        self.repository = repository
        self.lookup = dict(lookup)
        self.on_change = on_change
        self.active = True
        self._last_fingerprint = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.unsubscribe()
        return False

    def unsubscribe(self):
        if not self.active:
            return
        self.active = False
        _registry.remove(self.repository.model, self)

    def notify(self):
        if self.active:
            transaction.on_commit(self.deliver, robust=True)

    def deliver(self, force=False):
        if not self.active:
            return
        snapshot = self.repository.filter(**self.lookup)
        fingerprint = tuple(
            (obj.pk, getattr(obj, 'updated_at', None), getattr(obj, 'version', None)) for obj in snapshot
        )
        # Several writes in one commit queue several callbacks; they all see the same state.
        if not force and fingerprint == self._last_fingerprint:
            return
        self._last_fingerprint = fingerprint
        self.on_change(snapshot)


class _SubscriptionRegistry:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions = {}
        self._connected = set()

    def add(self, model, subscription):
        with self._lock:
            if model not in self._connected:
                self._connect(model)
            self._subscriptions.setdefault(model, []).append(subscription)

    def remove(self, model, subscription):
        with self._lock:
            subs = self._subscriptions.get(model, [])
            if subscription in subs:
                subs.remove(subscription)

    def active(self, model):
        with self._lock:
            return list(self._subscriptions.get(model, []))

    def _connect(self, model):
        uid = f'tracker-store-{model._meta.label_lower}'
        post_save.connect(self._on_write, sender=model, dispatch_uid=f'{uid}-save', weak=False)
        post_delete.connect(self._on_write, sender=model, dispatch_uid=f'{uid}-delete', weak=False)
        if model is Project:
            m2m_changed.connect(
                self._on_assignment, sender=Project.assigned_to.through, dispatch_uid=f'{uid}-m2m', weak=False
            )
        self._connected.add(model)

    def _on_write(self, sender, **kwargs):
        for subscription in self.active(sender):
            subscription.notify()

    def _on_assignment(self, sender, action, **kwargs):
        if action.startswith('post_'):
            self._on_write(Project)


_registry = _SubscriptionRegistry()


class Repository:
    model = None
    collection = None

    def get(self, pk):
        try:
            return self.model.objects.get(pk=pk)
        except (self.model.DoesNotExist, DjangoValidationError, ValueError):
            raise NotFoundError(f"{self.model.__name__} '{pk}' not found")

    def exists(self, pk):
        try:
            return self.model.objects.filter(pk=pk).exists()
        except (DjangoValidationError, ValueError):
            return False

    def filter(self, **lookup):
        return list(self.model.objects.filter(**lookup).order_by('created_at'))

    def subscribe(self, lookup, on_change):
        """
        Open a live query.

        Args:
            lookup (dict): Django field lookups, e.g. {"project_id": pid} or {"assigned_to": uid}.
            on_change (callable): Called with the list of matching records, ordered by created_at.

        Returns:
            Subscription: release it with `unsubscribe()` or by leaving a `with` block.
        """
        subscription = Subscription(self, lookup, on_change)
        _registry.add(self.model, subscription)
        logger.debug("Subscribed to %s where %s", self.collection, lookup)
        subscription.deliver(force=True)
        return subscription


class UserRepository(Repository):
    collection = 'users'

    @property
    def model(self):
        return get_user_model()

    def with_role(self, role):
        return self.filter(role=role)


class ProjectRepository(Repository):
    model = Project
    collection = 'projects'

    def created_by(self, user_id):
        return self.filter(created_by_id=user_id)

    def assigned_to(self, user_id):
        return self.filter(assigned_to=user_id)


class TaskRepository(Repository):
    model = Task
    collection = 'tasks'

    def for_project(self, project_id):
        return self.filter(project_id=project_id)


class CommentRepository(Repository):
    model = Comment
    collection = 'comments'

    def for_task(self, task_id):
        return self.filter(task_id=task_id)


users = UserRepository()
projects = ProjectRepository()
tasks = TaskRepository()
comments = CommentRepository()
