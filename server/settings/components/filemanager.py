"""File manager settings.

Read by ``FileManagerConfig.from_settings()``; every key is optional.
"""

from typing import Any, Final

from server.settings.components import config

FILEMANAGER: Final[dict[str, Any]] = {
    # STORAGES alias the file manager works on
    'disk': config('FILEMANAGER_DISK', default='default'),
    # Default sort order for listings: name, size, date or mime
    'order': config('FILEMANAGER_ORDER', default='mime'),
    # Default filter group applied to listings (None shows everything)
    'filter': config('FILEMANAGER_FILTER', default=None),
    'buttons': {
        'create_folder': True,
        'upload_button': True,
        'select_multiple': True,
        'upload_drag': True,
        'rename_folder': True,
        'delete_folder': True,
        'rename_file': True,
        'delete_file': True,
        'download_file': config(
            'FILEMANAGER_DOWNLOAD_FILE',
            cast=bool,
            default=True,
        ),
    },
    'filters': {
        'Images': ['jpg', 'jpeg', 'png', 'gif', 'svg', 'bmp', 'tiff', 'webp'],
        'Documents': [
            'txt', 'pdf', 'doc', 'docx', 'xls', 'xlsx', 'ppt', 'pptx',
            'odt', 'ods', 'csv', 'rtf',
        ],
        'Audios': ['mp3', 'wav', 'ogg', 'flac', 'aac', 'm4a'],
        'Videos': ['mp4', 'avi', 'mov', 'mkv', 'webm', 'mpeg'],
        'Archives': ['zip', 'rar', 'tar', 'gz', '7z'],
    },
    # Filter group -> dotted path of a FileJob subclass run after upload
    'jobs': {},
    'queue_name': config('FILEMANAGER_QUEUE_NAME', default=None),
    # Built-in strategy name or dotted path to a custom strategy class
    'naming': config('FILEMANAGER_NAMING', default='default'),
    'except_files': ['.DS_Store'],
    'except_folders': [],
    'except_extensions': [],
}
