"""Tests for the file manager orchestrator."""

import pytest
from django.core.exceptions import ValidationError
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.validators import FileExtensionValidator

from server.apps.filemanager.config import FileManagerConfig
from server.apps.filemanager.exceptions import (
    BackendFailureError,
    FeatureDisabledError,
    PartialFailureError,
    PathAlreadyExistsError,
    PathNotFoundError,
)
from server.apps.filemanager.infrastructure.disk import FOLDER_MARKER_NAME
from server.apps.filemanager.logic import jobs
from server.apps.filemanager.logic.file_manager import FileManager
from server.apps.filemanager.logic.jobs import FileJob
from server.apps.filemanager.logic.paths import folder_exists
from server.apps.filemanager.signals import (
    FileRemoved,
    FileUploaded,
    FolderRemoved,
    FolderUploaded,
)
from server.apps.filemanager.validators import MaxFileSizeValidator


class _FailingDisk:
    """Disk wrapper whose given method always raises."""

    def __init__(self, disk, method: str, error: Exception) -> None:
        self._disk = disk
        self._method = method
        self._error = error

    def __getattr__(self, name: str):
        if name == self._method:
            def _fail(*args, **kwargs):
                raise self._error
            return _fail
        return getattr(self._disk, name)


class _RecordingDispatcher:
    def __init__(self) -> None:
        self.jobs = []

    def dispatch(self, job: FileJob) -> None:
        self.jobs.append(job)


class _ThumbnailJob(FileJob):
    def handle(self) -> None:
        """Nothing to do in tests."""


def _upload(name: str, content: bytes = b'uploaded content'):
    return SimpleUploadedFile(name, content)


@pytest.fixture
def documents(put_file, disk):
    """Folder with a mix of files and a subfolder."""
    put_file('/docs/notes.txt', b'notes')
    put_file('/docs/report.pdf', b'a much longer report body')
    put_file('/docs/photo.png', b'png')
    put_file('/docs/.DS_Store', b'junk')
    disk.make_directory('/docs/sub')
    return '/docs'


def test_list_folder(file_manager, documents):
    """Test listing puts folders first and hides excluded files."""
    listing = file_manager.list_folder(documents, sort='name')

    assert listing.path == '/docs'
    assert [entry.name for entry in listing.files] == [
        'sub',
        'notes.txt',
        'photo.png',
        'report.pdf',
    ]
    assert listing.files[0].is_directory
    assert listing.parent.path == '/'
    assert listing.breadcrumbs == [{'name': 'docs', 'path': '/docs'}]
    assert listing.buttons['download_file'] is True


def test_list_folder_sort_by_size(file_manager, documents):
    """Test size order keeps folders on top."""
    listing = file_manager.list_folder(documents, sort='size')

    assert [entry.name for entry in listing.files] == [
        'sub',
        'photo.png',
        'notes.txt',
        'report.pdf',
    ]


def test_list_folder_filter(file_manager, documents):
    """Test filters keep matching files and report available groups."""
    listing = file_manager.list_folder(documents, filter_name='Images')

    assert [entry.name for entry in listing.files] == ['photo.png']
    assert set(listing.filters) == {'Images', 'Documents'}


def test_list_folder_unknown_filter_is_ignored(file_manager, documents):
    """Test an unknown filter group lists everything."""
    listing = file_manager.list_folder(documents, filter_name='Nope')

    assert len(listing.files) == 4


def test_list_folder_missing_falls_back_to_root(file_manager, documents):
    """Test a missing folder lists root instead of failing."""
    listing = file_manager.list_folder('/missing')

    assert listing.path == '/'
    assert listing.parent is None
    assert [entry.path for entry in listing.files] == ['/docs']


def test_list_folder_invalid_input(file_manager):
    """Test bad sort orders and traversal are rejected."""
    with pytest.raises(ValidationError):
        file_manager.list_folder('/', sort='color')
    with pytest.raises(ValidationError):
        file_manager.list_folder('/../etc')


def test_list_folder_backend_failure(config, disk, documents):
    """Test unexpected storage errors become backend failures."""
    failing = _FailingDisk(disk, 'list_files', RuntimeError('boom'))
    manager = FileManager(config, disk=failing)

    with pytest.raises(BackendFailureError, match='list'):
        manager.list_folder(documents)


def test_create_folder(file_manager, disk):
    """Test folder creation and duplicate detection."""
    created = file_manager.create_folder('reports', '/')

    assert created.path == '/reports'
    assert created.is_directory
    assert disk.directory_exists('/reports')
    assert folder_exists(disk, '/reports')

    with pytest.raises(PathAlreadyExistsError):
        file_manager.create_folder('reports', '/')


def test_create_folder_sanitizes_name(file_manager, disk):
    """Test illegal characters are stripped from folder names."""
    created = file_manager.create_folder(' a/b: ', '/')

    assert created.path == '/ab'


def test_create_folder_invalid(file_manager):
    """Test missing parents and unusable names are rejected."""
    with pytest.raises(PathNotFoundError):
        file_manager.create_folder('reports', '/missing')
    with pytest.raises(ValidationError):
        file_manager.create_folder('..', '/')


def test_delete_folder(file_manager, disk, documents, events):
    """Test recursive delete with a single event."""
    file_manager.delete_folder(documents)

    assert not disk.exists('/docs')
    assert events == [FolderRemoved('memory', '/docs')]


def test_delete_folder_invalid(file_manager, events):
    """Test root and missing folders cannot be deleted."""
    with pytest.raises(ValidationError):
        file_manager.delete_folder('/')
    with pytest.raises(PathNotFoundError):
        file_manager.delete_folder('/missing')
    assert events == []


def test_upload_file(file_manager, disk, events):
    """Test upload stores the file and publishes one event."""
    descriptor = file_manager.upload_file(_upload('report.pdf'), '/docs')

    assert descriptor.path == '/docs/report.pdf'
    assert descriptor.mime_type == 'application/pdf'
    assert descriptor.mime_class == 'document'
    assert descriptor.visibility == 'public'
    assert disk.file_exists('/docs/report.pdf')
    assert events == [FileUploaded('memory', '/docs/report.pdf')]


def test_upload_same_name_three_times(file_manager, disk):
    """Test repeated uploads never overwrite each other."""
    paths = [
        file_manager.upload_file(_upload('report.pdf'), '/').path
        for _ in range(3)
    ]

    assert paths[0] == '/report.pdf'
    assert len(set(paths)) == 3
    assert sorted(disk.list_files('/')) == sorted(paths)


def test_upload_file_rules(file_manager, disk, events):
    """Test all failing rules are reported and nothing is stored."""
    rules = [
        MaxFileSizeValidator(3),
        FileExtensionValidator(allowed_extensions=['png']),
    ]

    with pytest.raises(ValidationError) as exc_info:
        file_manager.upload_file(_upload('report.pdf'), '/', rules=rules)

    assert len(exc_info.value.messages) == 2
    assert disk.list_files('/') == []
    assert events == []


def test_upload_file_reserved_name(file_manager, disk, events):
    """Test uploads cannot take the folder marker name."""
    with pytest.raises(ValidationError):
        file_manager.upload_file(_upload(FOLDER_MARKER_NAME), '/')

    _, files = disk.storage.listdir('')
    assert files == []
    assert events == []


def test_upload_file_invalid_visibility(file_manager):
    """Test unknown visibility values are rejected."""
    with pytest.raises(ValidationError, match='visibility'):
        file_manager.upload_file(_upload('a.txt'), '/', 'secret')


def test_upload_file_visibility_failure_rolls_back(config, disk, events):
    """Test a failed visibility change removes the stored file."""
    failing = _FailingDisk(disk, 'set_visibility', OSError('denied'))
    manager = FileManager(config, disk=failing, event_sink=events.append)

    with pytest.raises(BackendFailureError, match='set_visibility'):
        manager.upload_file(_upload('a.txt'), '/', 'private')

    assert disk.list_files('/') == []
    assert events == []


def test_folder_upload_announced_once(file_manager, disk, events):
    """Test folder uploads skip per-file events."""
    disk.make_directory('/album')
    for name in ('one.jpg', 'two.jpg'):
        file_manager.upload_file(
            _upload(name),
            '/album',
            suppress_events=True,
        )

    assert events == []

    file_manager.notify_folder_uploaded('/album')

    assert events == [FolderUploaded('memory', '/album')]


def test_notify_folder_uploaded_missing(file_manager):
    """Test announcing a missing folder fails."""
    with pytest.raises(PathNotFoundError):
        file_manager.notify_folder_uploaded('/missing')


def test_upload_dispatches_job(disk, events, monkeypatch):
    """Test the job of the matching filter group is dispatched."""
    monkeypatch.setattr(jobs, 'import_string', lambda _path: _ThumbnailJob)
    config = FileManagerConfig(
        disk='memory',
        filters={'Images': ['png']},
        jobs={'images': 'thumbnails.jobs.ThumbnailJob'},
        queue_name='media',
    )
    dispatcher = _RecordingDispatcher()
    manager = FileManager(
        config,
        disk=disk,
        dispatcher=dispatcher,
        event_sink=events.append,
    )

    manager.upload_file(_upload('pic.PNG'), '/')
    manager.upload_file(_upload('notes.txt'), '/')

    assert len(dispatcher.jobs) == 1
    job = dispatcher.jobs[0]
    assert isinstance(job, _ThumbnailJob)
    assert (job.disk, job.path, job.queue) == ('memory', '/pic.PNG', 'media')


def test_download_file(file_manager, put_file):
    """Test downloads stream file content."""
    put_file('/docs/notes.txt', b'notes')

    with file_manager.download_file('/docs/notes.txt') as file_obj:
        assert file_obj.read() == b'notes'

    with pytest.raises(PathNotFoundError):
        file_manager.download_file('/docs/missing.txt')


def test_download_disabled_checked_first(disk):
    """Test a disabled download wins over a missing file."""
    config = FileManagerConfig(
        disk='memory',
        buttons={'download_file': False},
    )
    manager = FileManager(config, disk=disk)

    with pytest.raises(FeatureDisabledError):
        manager.download_file('/missing.txt')


def test_get_file_info(file_manager, put_file, png_bytes):
    """Test info includes URL, checksum and image dimensions."""
    put_file('/images/pic.png', png_bytes)

    info = file_manager.get_file_info('/images/pic.png')

    assert info.size == len(png_bytes)
    assert info.mime_class == 'image'
    assert info.extras['width'] == 4
    assert info.extras['height'] == 3
    assert info.extras['url'] == '/media/images/pic.png'
    assert len(info.extras['checksum_sha256']) == 64


def test_get_file_info_missing(file_manager):
    """Test info on a missing path raises not found."""
    with pytest.raises(PathNotFoundError):
        file_manager.get_file_info('/missing.txt')


def test_remove_file(file_manager, disk, put_file, events):
    """Test removing a file publishes exactly one event."""
    put_file('/docs/notes.txt')

    file_manager.remove_file('/docs/notes.txt')

    assert not disk.file_exists('/docs/notes.txt')
    assert events == [FileRemoved('memory', '/docs/notes.txt')]


def test_remove_file_missing(file_manager, events):
    """Test removing a missing file raises and publishes nothing."""
    with pytest.raises(PathNotFoundError):
        file_manager.remove_file('/docs/notes.txt')
    assert events == []


def test_duplicate_file(file_manager, put_file):
    """Test duplicates are described with their numbered name."""
    put_file('/images/image.png')

    assert file_manager.duplicate_file('/images/image.png').name == (
        'image(1).png'
    )
    assert file_manager.duplicate_file('/images/image.png').name == (
        'image(2).png'
    )


def test_rename_file(file_manager, disk, put_file):
    """Test renaming a file keeps it in its folder."""
    put_file('/docs/notes.txt', b'notes')

    renamed = file_manager.rename_file('/docs/notes.txt', 'todo.txt')

    assert renamed.path == '/docs/todo.txt'
    assert not disk.exists('/docs/notes.txt')


def test_rename_file_conflicts(file_manager, put_file):
    """Test renames onto taken names and missing sources fail."""
    put_file('/docs/notes.txt')
    put_file('/docs/todo.txt')

    with pytest.raises(PathAlreadyExistsError):
        file_manager.rename_file('/docs/notes.txt', 'todo.txt')
    with pytest.raises(PathNotFoundError):
        file_manager.rename_file('/docs/missing.txt', 'other.txt')
    with pytest.raises(ValidationError):
        file_manager.rename_file('/', 'other')


def test_rename_file_reserved_name(file_manager, disk, put_file):
    """Test a file cannot be renamed onto the folder marker."""
    disk.make_directory('/docs')
    put_file('/docs/notes.txt')

    with pytest.raises(ValidationError):
        file_manager.rename_file('/docs/notes.txt', FOLDER_MARKER_NAME)
    with pytest.raises(ValidationError):
        file_manager.rename_file('/docs', FOLDER_MARKER_NAME)

    assert disk.file_exists('/docs/notes.txt')
    assert disk.list_files('/docs') == ['/docs/notes.txt']
    assert disk.storage.exists(f'docs/{FOLDER_MARKER_NAME}')


def test_rename_folder(file_manager, disk, documents):
    """Test renaming a folder moves its whole subtree."""
    renamed = file_manager.rename_file(documents, '.papers.')

    assert renamed.path == '/papers'
    assert renamed.is_directory
    assert disk.file_exists('/papers/report.pdf')
    assert disk.directory_exists('/papers/sub')
    assert not disk.exists('/docs')


def test_move_file(file_manager, disk, put_file):
    """Test moving a file into another folder."""
    put_file('/docs/notes.txt')
    disk.make_directory('/archive')

    moved = file_manager.move_file('/docs/notes.txt', '/archive/notes.txt')

    assert moved.path == '/archive/notes.txt'
    assert not disk.exists('/docs/notes.txt')


def test_move_folder(file_manager, disk, documents):
    """Test moving a folder below another folder."""
    disk.make_directory('/archive')

    file_manager.move_file(documents, '/archive/docs')

    assert disk.file_exists('/archive/docs/notes.txt')
    assert not disk.exists('/docs')


def test_move_file_preconditions(file_manager, disk, put_file, documents):
    """Test missing sources, taken targets and missing parents fail."""
    put_file('/other.txt')

    with pytest.raises(PathNotFoundError):
        file_manager.move_file('/missing.txt', '/docs/missing.txt')
    with pytest.raises(PathAlreadyExistsError):
        file_manager.move_file('/other.txt', '/docs/notes.txt')
    with pytest.raises(PathNotFoundError, match='/nowhere'):
        file_manager.move_file('/other.txt', '/nowhere/other.txt')
    with pytest.raises(ValidationError):
        file_manager.move_file('/', '/docs/root')
    with pytest.raises(ValidationError, match='into itself'):
        file_manager.move_file(documents, '/docs/sub/docs')


def test_move_file_sanitizes_name(file_manager, disk, documents):
    """Test the destination name is cleaned like a rename."""
    disk.make_directory('/archive')

    moved = file_manager.move_file('/docs/notes.txt', '/archive/to*do?.txt')

    assert moved.path == '/archive/todo.txt'
    assert disk.file_exists('/archive/todo.txt')
    assert not disk.exists('/docs/notes.txt')

    moved = file_manager.move_file(documents, '/archive/.papers.')

    assert moved.path == '/archive/papers'
    assert disk.file_exists('/archive/papers/report.pdf')


def test_move_file_reserved_name(file_manager, disk, documents):
    """Test nothing can be moved onto the folder marker."""
    with pytest.raises(ValidationError):
        file_manager.move_file(
            '/docs/notes.txt',
            f'/docs/sub/{FOLDER_MARKER_NAME}',
        )
    with pytest.raises(ValidationError):
        file_manager.move_file(
            f'/docs/sub/{FOLDER_MARKER_NAME}',
            '/docs/marker',
        )

    assert disk.file_exists('/docs/notes.txt')
    assert disk.directory_exists('/docs/sub')


def test_move_folder_partial_failure(config, disk, documents, flaky_disk):
    """Test a partially copied folder move keeps the source."""
    manager = FileManager(config, disk=flaky_disk(2))

    with pytest.raises(PartialFailureError):
        manager.move_file(documents, '/moved')

    assert disk.file_exists('/docs/notes.txt')
    assert disk.file_exists('/docs/report.pdf')
