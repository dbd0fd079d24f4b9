"""Root URL configuration."""

from django.urls import include, path

urlpatterns = [
    path('filemanager/', include('server.apps.filemanager.urls')),
]
