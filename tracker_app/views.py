# tracker_app/views.py
import datetime
import logging

from django.db.models import Q
from django.utils import timezone
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from .errors import AIAdapterError, ConflictError, NotFoundError, StoreError, ValidationError
from .models import DeletedRecord, Project, Task
from .serializers import (
    BreakdownRequestSerializer,
    CommentCreateSerializer,
    CommentSerializer,
    ProjectCreateSerializer,
    ProjectSerializer,
    StatusUpdateSerializer,
    SubmitSerializer,
    TaskCreateSerializer,
    TaskSerializer,
)
from .viewers import viewer_for

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    StoreError: status.HTTP_503_SERVICE_UNAVAILABLE,
    AIAdapterError: status.HTTP_502_BAD_GATEWAY,
}


def result_response(result, success_status=status.HTTP_200_OK):
    """Translate an OperationResult into an HTTP response."""
    if result.success:
        return Response(result.to_dict(), status=success_status)
    http_status = ERROR_STATUS.get(type(result.error), status.HTTP_400_BAD_REQUEST)
    return Response(result.to_dict(), status=http_status)


def forbidden(operation):
    return Response(
        {'success': False, 'error': {'code': 'forbidden', 'message': f"Your role cannot {operation.replace('_', ' ')}"}},
        status=status.HTTP_403_FORBIDDEN,
    )


def invalid(serializer):
    return Response({'success': False, 'errors': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)


class TrackerAPIView(APIView):
    """Base view that resolves the caller's capability set."""

    def viewer(self, request):
        return viewer_for(request.user)


class SyncView(TrackerAPIView):
    """
    Pull endpoint mirroring the WatermelonDB sync protocol for projects and tasks.

    Only records visible to the caller are returned: projects they created or
    are assigned to, and the tasks of those projects.
    """

    def get(self, request):
        """
        Handle GET requests to pull changes since the last synchronization timestamp.

        Query Parameters:
            last_pulled_at (str): Timestamp in milliseconds since Unix epoch representing the last sync time.

        Returns:
            Response: A JSON response containing:
                - changes: created, updated and deleted records for projects and tasks.
                - timestamp: Current server timestamp in milliseconds.
        """
        last_pulled_at_str = request.query_params.get('last_pulled_at')
        if last_pulled_at_str:
            last_pulled_at = datetime.datetime.fromtimestamp(
                int(last_pulled_at_str) / 1000, tz=datetime.timezone.utc
            )
        else:
            last_pulled_at = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)

        projects = Project.objects.filter(
            Q(created_by=request.user) | Q(assigned_to=request.user)
        ).distinct()
        tasks = Task.objects.filter(project__in=projects)

        projects_created = projects.filter(created_at__gt=last_pulled_at)
        projects_updated = projects.filter(updated_at__gt=last_pulled_at, created_at__lte=last_pulled_at)
        tasks_created = tasks.filter(created_at__gt=last_pulled_at)
        tasks_updated = tasks.filter(updated_at__gt=last_pulled_at, created_at__lte=last_pulled_at)

        tombstones = DeletedRecord.objects.filter(audience=request.user, deleted_at__gt=last_pulled_at)
        projects_deleted = tombstones.filter(collection='projects').values_list('record_id', flat=True)
        tasks_deleted = tombstones.filter(collection='tasks').values_list('record_id', flat=True)

        changes = {
            'projects': {
                'created': ProjectSerializer(projects_created, many=True).data,
                'updated': ProjectSerializer(projects_updated, many=True).data,
                'deleted': list(projects_deleted),
            },
            'tasks': {
                'created': TaskSerializer(tasks_created, many=True).data,
                'updated': TaskSerializer(tasks_updated, many=True).data,
                'deleted': list(tasks_deleted),
            },
        }

        current_timestamp = int(timezone.now().timestamp() * 1000)
        return Response({'changes': changes, 'timestamp': current_timestamp})


class ProjectListView(TrackerAPIView):
    def get(self, request):
        projects = self.viewer(request).projects()
        return Response(ProjectSerializer(projects, many=True).data)

    def post(self, request):
        viewer = self.viewer(request)
        if not viewer.can('create_project'):
            return forbidden('create_project')
        serializer = ProjectCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid(serializer)
        data = serializer.validated_data
        result = viewer.create_project(
            data['title'], data['description'], data.get('deadline'), data['assigned_to'],
            seed_tasks=data.get('seed_tasks'),
        )
        return result_response(result, success_status=status.HTTP_201_CREATED)


class ProjectDetailView(TrackerAPIView):
    def delete(self, request, project_id):
        viewer = self.viewer(request)
        if not viewer.can('delete_project'):
            return forbidden('delete_project')
        return result_response(viewer.delete_project(str(project_id)))


class ProjectStatusView(TrackerAPIView):
    def post(self, request, project_id):
        viewer = self.viewer(request)
        if not viewer.can('update_project_status'):
            return forbidden('update_project_status')
        serializer = StatusUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid(serializer)
        data = serializer.validated_data
        return result_response(viewer.update_project_status(
            str(project_id), data['status'], expected_version=data.get('expected_version')
        ))


class ProjectSubmitView(TrackerAPIView):
    def post(self, request, project_id):
        viewer = self.viewer(request)
        if not viewer.can('submit_project'):
            return forbidden('submit_project')
        serializer = SubmitSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid(serializer)
        return result_response(viewer.submit_project(
            str(project_id), expected_version=serializer.validated_data.get('expected_version')
        ))


class ProjectTaskView(TrackerAPIView):
    def post(self, request, project_id):
        serializer = TaskCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid(serializer)
        data = serializer.validated_data
        result = self.viewer(request).create_task(
            str(project_id), data['title'], due_date=data.get('due_date'), parent_id=data.get('parent_id') or None
        )
        return result_response(result, success_status=status.HTTP_201_CREATED)


class TaskStatusView(TrackerAPIView):
    def post(self, request, task_id):
        serializer = StatusUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid(serializer)
        data = serializer.validated_data
        return result_response(self.viewer(request).update_task_status(
            str(task_id), data['status'], expected_version=data.get('expected_version')
        ))


class TaskCommentView(TrackerAPIView):
    def get(self, request, task_id):
        result = self.viewer(request).list_comments(str(task_id))
        if result.success:
            return Response(CommentSerializer(result.value, many=True).data)
        return result_response(result)

    def post(self, request, task_id):
        serializer = CommentCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid(serializer)
        data = serializer.validated_data
        result = self.viewer(request).add_comment(str(task_id), data['text'], user_image=data.get('user_image'))
        return result_response(result, success_status=status.HTTP_201_CREATED)


class BreakdownSuggestionView(TrackerAPIView):
    def post(self, request):
        viewer = self.viewer(request)
        if not viewer.can('suggest_task_breakdown'):
            return forbidden('suggest_task_breakdown')
        serializer = BreakdownRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid(serializer)
        data = serializer.validated_data
        return result_response(viewer.suggest_task_breakdown(data['title'], data['description']))


class PrioritySuggestionView(TrackerAPIView):
    def post(self, request):
        viewer = self.viewer(request)
        if viewer.can('suggest_priority'):
            return result_response(viewer.suggest_priority())
        return result_response(viewer.suggest_order(request.data.get('workload', '')))
