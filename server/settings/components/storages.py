"""Django storage configuration for file manager disks.

Each ``STORAGES`` alias is a disk the file manager can be pointed at:
- ``default``: local disk under ``MEDIA_ROOT``
- ``s3``: S3-compatible object storage (MinIO, Cloudflare R2, AWS)

Both are plain Django storages; the file manager adapts them through
``server.apps.filemanager.infrastructure.disk.Disk``.
"""

from typing import Any, Final

from server.settings.components import config
from server.settings.components.common import MEDIA_ROOT, MEDIA_URL

STORAGES: Final[dict[str, dict[str, Any]]] = {
    'default': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
        'OPTIONS': {
            'location': MEDIA_ROOT,
            'base_url': MEDIA_URL,
        },
    },
    's3': {
        'BACKEND': 'server.apps.filemanager.infrastructure.storage.FileStorage',
        'OPTIONS': {
            'bucket_name': config(
                'AWS_STORAGE_BUCKET_NAME',
                default='filemanager',
            ),
            'access_key': config('AWS_ACCESS_KEY_ID', default=None),
            'secret_key': config('AWS_SECRET_ACCESS_KEY', default=None),
            'endpoint_url': config(
                'AWS_S3_ENDPOINT_URL',
                default=None,
            ),
            'region_name': config(
                'AWS_S3_REGION_NAME',
                default='auto',
            ),
            # Naming strategies decide names; never let storage overwrite
            'file_overwrite': False,
            'default_acl': None,  # Inherit bucket ACL
        },
    },
    'staticfiles': {
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}
