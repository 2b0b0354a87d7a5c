# tracker_app/urls.py
from django.urls import path
from .views import (
    BreakdownSuggestionView,
    PrioritySuggestionView,
    ProjectDetailView,
    ProjectListView,
    ProjectStatusView,
    ProjectSubmitView,
    ProjectTaskView,
    SyncView,
    TaskCommentView,
    TaskStatusView,
)

urlpatterns = [
    path('sync/', SyncView.as_view(), name='sync'),
    path('projects/', ProjectListView.as_view(), name='project-list'),
    path('projects/<uuid:project_id>/', ProjectDetailView.as_view(), name='project-detail'),
    path('projects/<uuid:project_id>/status/', ProjectStatusView.as_view(), name='project-status'),
    path('projects/<uuid:project_id>/submit/', ProjectSubmitView.as_view(), name='project-submit'),
    path('projects/<uuid:project_id>/tasks/', ProjectTaskView.as_view(), name='project-tasks'),
    path('tasks/<uuid:task_id>/status/', TaskStatusView.as_view(), name='task-status'),
    path('tasks/<uuid:task_id>/comments/', TaskCommentView.as_view(), name='task-comments'),
    path('suggestions/breakdown/', BreakdownSuggestionView.as_view(), name='suggest-breakdown'),
    path('suggestions/priority/', PrioritySuggestionView.as_view(), name='suggest-priority'),
]
