from django.apps import AppConfig


class FileUploadConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'fileupload'
    verbose_name = 'File uploads'

    def ready(self):
        """Register system checks when the app is ready."""
        from . import checks  # noqa: F401
