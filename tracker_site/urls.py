# tracker_site/urls.py
from django.urls import include, path

urlpatterns = [
    path('api/', include('tracker_app.urls')),
    path('api/users/', include('tracker_user.urls')),
]
