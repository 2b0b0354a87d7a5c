from django.apps import AppConfig


class TrackerAppConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'tracker_app'
    verbose_name = 'Projects and tasks'
