from django.apps import AppConfig


class ClassroomConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.classroom'
    label = 'classroom'

    def ready(self):
        from . import signals  # noqa: F401
