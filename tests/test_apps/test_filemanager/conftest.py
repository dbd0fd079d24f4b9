"""Shared fixtures for file manager app tests."""

from collections.abc import Callable
from io import BytesIO

import boto3
import pytest
from django.core.files.base import ContentFile
from django.core.files.storage import InMemoryStorage
from moto import mock_aws
from PIL import Image

from server.apps.filemanager.config import FileManagerConfig
from server.apps.filemanager.infrastructure.disk import Disk, to_storage_key
from server.apps.filemanager.infrastructure.storage import FileStorage
from server.apps.filemanager.logic.file_manager import FileManager

TEST_BUCKET = 'filemanager'

# Absolute location without symlinks, InMemoryStorage resolves against it
MEMORY_LOCATION = '/filemanager-tests'

TEST_FILTERS = {
    'Images': ['jpg', 'jpeg', 'png', 'gif'],
    'Documents': ['txt', 'pdf', 'docx'],
    'Archives': ['zip'],
}


class FlakyDisk:
    """Disk wrapper whose file copies start failing after a few calls."""

    def __init__(self, disk: Disk, successful_copies: int) -> None:
        self._disk = disk
        self._remaining = successful_copies
        self.attempted_copies = 0

    def copy(self, source: str, destination: str) -> str:
        self.attempted_copies += 1
        if self._remaining <= 0:
            raise OSError(f'Simulated copy failure: {source}')
        self._remaining -= 1
        return self._disk.copy(source, destination)

    def __getattr__(self, name: str):
        return getattr(self._disk, name)


@pytest.fixture
def memory_storage():
    """Empty in-memory Django storage.

    Returns:
        InMemoryStorage instance.
    """
    return InMemoryStorage(location=MEMORY_LOCATION, base_url='/media/')


@pytest.fixture
def disk(memory_storage):
    """Disk adapter over the in-memory storage.

    Returns:
        Disk instance named 'memory'.
    """
    return Disk(memory_storage, name='memory')


@pytest.fixture
def put_file(memory_storage) -> Callable[..., str]:
    """Write a file straight into the in-memory storage.

    Returns:
        Callable taking a path and optional bytes, returning the path.
    """
    def _put(path: str, content: bytes = b'test file content') -> str:
        memory_storage.save(to_storage_key(path), ContentFile(content))
        return path

    return _put


@pytest.fixture
def config():
    """File manager configuration used by most tests.

    Returns:
        FileManagerConfig with image/document/archive filter groups.
    """
    return FileManagerConfig(disk='memory', filters=TEST_FILTERS)


@pytest.fixture
def events():
    """Collected events published by the file manager.

    Returns:
        List the event sink appends to.
    """
    return []


@pytest.fixture
def file_manager(config, disk, events):
    """File manager over the in-memory disk, recording events.

    Returns:
        FileManager instance.
    """
    return FileManager(config, disk=disk, event_sink=events.append)


@pytest.fixture
def flaky_disk(disk) -> Callable[[int], FlakyDisk]:
    """Build disks whose copies fail after N successes.

    Returns:
        Factory taking the number of copies that succeed.
    """
    def _build(successful_copies: int) -> FlakyDisk:
        return FlakyDisk(disk, successful_copies)

    return _build


@pytest.fixture
def png_bytes() -> bytes:
    """A real 4x3 PNG image.

    Returns:
        Encoded PNG bytes.
    """
    buffer = BytesIO()
    Image.new('RGB', (4, 3), color='red').save(buffer, format='PNG')
    return buffer.getvalue()


@pytest.fixture
def mock_s3():
    """Mock S3 service with filemanager bucket.

    Yields:
        boto3 S3 resource with filemanager bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(Bucket=TEST_BUCKET)

        yield conn


@pytest.fixture
def s3_storage(mock_s3):
    """FileStorage talking to the mocked bucket.

    Returns:
        FileStorage instance.
    """
    return FileStorage(
        bucket_name=TEST_BUCKET,
        region_name='us-east-1',
        access_key='testing',
        secret_key='testing',
        file_overwrite=False,
        default_acl=None,
    )


@pytest.fixture
def s3_disk(s3_storage):
    """Disk adapter over the mocked S3 storage.

    Returns:
        Disk instance named 's3'.
    """
    return Disk(s3_storage, name='s3')
