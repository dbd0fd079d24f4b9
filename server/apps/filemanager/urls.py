"""URL routes of the file manager app."""

from django.urls import path

from server.apps.filemanager import views

app_name = 'filemanager'

urlpatterns = [
    path('data', views.folder_data, name='data'),
    path('actions/create-folder', views.create_folder, name='create-folder'),
    path('actions/delete-folder', views.delete_folder, name='delete-folder'),
    path('actions/get-info', views.file_info, name='get-info'),
    path('actions/remove-file', views.remove_file, name='remove-file'),
    path(
        'actions/duplicate-file',
        views.duplicate_file,
        name='duplicate-file',
    ),
    path('actions/rename-file', views.rename_file, name='rename-file'),
    path('actions/move', views.move_file, name='move'),
    path(
        'actions/download-file',
        views.download_file,
        name='download-file',
    ),
    path('uploads/add', views.upload_file, name='upload'),
    path('uploads/folder', views.folder_uploaded, name='folder-uploaded'),
]
