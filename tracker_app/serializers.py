# tracker_app/serializers.py
from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import Comment, Project, Status, Task


class ProjectSerializer(serializers.ModelSerializer):
    created_by = serializers.PrimaryKeyRelatedField(read_only=True)
    assigned_to = serializers.PrimaryKeyRelatedField(many=True, read_only=True)

    class Meta:
        model = Project
        fields = ['id', 'title', 'description', 'deadline', 'created_by', 'assigned_to',
                  'status', 'grade', 'version', 'created_at', 'updated_at']


class TaskSerializer(serializers.ModelSerializer):
    project = serializers.PrimaryKeyRelatedField(queryset=Project.objects.all())
    parent = serializers.PrimaryKeyRelatedField(read_only=True)
    created_by = serializers.PrimaryKeyRelatedField(queryset=get_user_model().objects.all())

    class Meta:
        model = Task
        fields = ['id', 'project', 'parent', 'title', 'status', 'created_by', 'due_date',
                  'grade', 'version', 'created_at', 'updated_at']


class CommentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Comment
        fields = ['id', 'task', 'user_id', 'user_name', 'user_image', 'text', 'created_at']


# Request bodies. Only shape is checked here; the lifecycle rules live in lifecycle.py.

class ProjectCreateSerializer(serializers.Serializer):
    title = serializers.CharField(allow_blank=True)
    description = serializers.CharField(allow_blank=True)
    deadline = serializers.DateTimeField(required=False, allow_null=True)
    assigned_to = serializers.ListField(child=serializers.CharField(), allow_empty=True)
    seed_tasks = serializers.ListField(child=serializers.CharField(allow_blank=True), required=False, default=list)


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Status.choices)
    expected_version = serializers.IntegerField(required=False, allow_null=True, min_value=1)


class SubmitSerializer(serializers.Serializer):
    expected_version = serializers.IntegerField(required=False, allow_null=True, min_value=1)


class TaskCreateSerializer(serializers.Serializer):
    title = serializers.CharField(allow_blank=True)
    due_date = serializers.DateTimeField(required=False, allow_null=True)
    parent_id = serializers.CharField(required=False, allow_null=True, allow_blank=True)


class CommentCreateSerializer(serializers.Serializer):
    text = serializers.CharField(allow_blank=True, trim_whitespace=False)
    user_image = serializers.URLField(required=False, allow_null=True, allow_blank=True)


class BreakdownRequestSerializer(serializers.Serializer):
    title = serializers.CharField()
    description = serializers.CharField()
