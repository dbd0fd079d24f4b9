"""Django app configuration for the file manager app."""

from django.apps import AppConfig


class FileManagerAppConfig(AppConfig):
    """Configuration for file manager app."""

    name = 'server.apps.filemanager'
    verbose_name = 'File manager'
