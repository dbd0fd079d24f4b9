"""File manager orchestration: the operations exposed to the web UI.

Every operation follows the same order:
1. Normalize and validate paths and names (no storage writes yet).
2. Check existence preconditions.
3. Run the storage calls.
4. Publish events (and, for uploads, dispatch jobs).

Unexpected storage exceptions are logged and re-raised as
``BackendFailureError``; domain errors pass through untouched.
"""

import contextlib
import dataclasses
import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from typing import TYPE_CHECKING, Any, Final, final

from django.core.exceptions import ValidationError

from server.apps.filemanager.config import SORT_ORDERS, FileManagerConfig
from server.apps.filemanager.exceptions import (
    BackendFailureError,
    FeatureDisabledError,
    FileManagerError,
    PathAlreadyExistsError,
    PathNotFoundError,
)
from server.apps.filemanager.infrastructure.disk import get_disk
from server.apps.filemanager.infrastructure.metadata import (
    FileDescriptor,
    describe,
    describe_directory,
    describe_file,
)
from server.apps.filemanager.logic import tree_operations
from server.apps.filemanager.logic.jobs import (
    JobDispatcher,
    SyncJobDispatcher,
    dispatch_upload_job,
)
from server.apps.filemanager.logic.naming import (
    NamingStrategy,
    get_naming_strategy,
)
from server.apps.filemanager.logic.paths import (
    ROOT,
    basename,
    breadcrumbs,
    fix_dirname,
    fix_filename,
    folder_exists,
    is_root,
    join_path,
    normalize_path,
    parent_path,
)
from server.apps.filemanager.signals import (
    FileManagerEvent,
    FileRemoved,
    FileUploaded,
    FolderRemoved,
    FolderUploaded,
    send_event,
)

if TYPE_CHECKING:
    from django.core.files.base import File
    from django.core.files.uploadedfile import UploadedFile

    from server.apps.filemanager.infrastructure.disk import StoragePort

logger = logging.getLogger(__name__)

VISIBILITIES: Final = ('public', 'private')

EventSink = Callable[[FileManagerEvent], None]
UploadRule = Callable[['UploadedFile'], None]

_SORT_KEYS: Final[dict[str, Callable[[FileDescriptor], Any]]] = {
    'name': lambda entry: entry.name.casefold(),
    'size': lambda entry: entry.size,
    'date': lambda entry: (
        entry.last_modified.timestamp() if entry.last_modified else 0.0
    ),
    'mime': lambda entry: entry.mime_type,
}


@final
@dataclasses.dataclass(frozen=True, kw_only=True)
class FolderListing:
    """Result of listing a folder."""

    path: str
    files: list[FileDescriptor]
    filters: dict[str, tuple[str, ...]]
    parent: FileDescriptor | None
    breadcrumbs: list[dict[str, str]]
    buttons: dict[str, bool]

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON friendly dictionary."""
        return {
            'path': self.path,
            'files': [entry.to_dict() for entry in self.files],
            'filters': {
                group: list(extensions)
                for group, extensions in self.filters.items()
            },
            'parent': self.parent.to_dict() if self.parent else None,
            'breadcrumbs': self.breadcrumbs,
            'buttons': self.buttons,
        }


def sort_entries(
    entries: Iterable[FileDescriptor],
    order: str,
) -> list[FileDescriptor]:
    """Sort listing entries: folders first, then by the order key.

    Ties on the order key keep name order.

    Args:
        entries: Descriptors to sort.
        order: One of name, size, date, mime.

    Returns:
        New sorted list.
    """
    by_name = sorted(entries, key=_SORT_KEYS['name'])
    by_key = sorted(by_name, key=_SORT_KEYS[order])
    return sorted(by_key, key=lambda entry: not entry.is_directory)


@final
class FileManager:
    """Coordinates storage, naming, jobs and events for one disk."""

    def __init__(
        self,
        config: FileManagerConfig,
        *,
        disk: 'StoragePort | None' = None,
        naming: NamingStrategy | None = None,
        dispatcher: JobDispatcher | None = None,
        event_sink: EventSink | None = None,
    ) -> None:
        """Initialize the file manager.

        Args:
            config: File manager configuration.
            disk: Storage port; defaults to the disk named in config.
            naming: Naming strategy; defaults to the one named in config.
            dispatcher: Job dispatcher; defaults to running jobs inline.
            event_sink: Callable receiving events; defaults to signals.

        Raises:
            InvalidConfigError: If the disk or naming strategy
                cannot be resolved.
        """
        self._config = config
        self._disk = disk if disk is not None else get_disk(config.disk)
        self._naming = naming or get_naming_strategy(config.naming, self._disk)
        self._dispatcher = dispatcher or SyncJobDispatcher()
        self._emit = event_sink or send_event

    @classmethod
    def from_settings(cls, **kwargs: Any) -> 'FileManager':
        """Build a file manager from ``settings.FILEMANAGER``."""
        return cls(FileManagerConfig.from_settings(), **kwargs)

    @property
    def config(self) -> FileManagerConfig:
        """Get the configuration."""
        return self._config

    @property
    def disk(self) -> 'StoragePort':
        """Get the storage port."""
        return self._disk

    def list_folder(
        self,
        path: str | None = None,
        sort: str | None = None,
        filter_name: str | None = None,
    ) -> FolderListing:
        """List the immediate children of a folder.

        Args:
            path: Folder path; a missing folder falls back to root.
            sort: name, size, date or mime; defaults to config order.
            filter_name: Filter group keeping only matching files;
                defaults to config filter; unknown groups are ignored.

        Returns:
            FolderListing.

        Raises:
            ValidationError: If path or sort order is invalid.
        """
        folder = normalize_path(path)
        order = sort or self._config.order
        if order not in SORT_ORDERS:
            raise ValidationError(f'Unknown sort order: {order}')
        if filter_name is None:
            filter_name = self._config.filter

        with self._storage_errors('list', folder):
            if not is_root(folder) and not folder_exists(self._disk, folder):
                logger.debug('Folder %s not found, listing root', folder)
                folder = ROOT
            entries = sort_entries(self._children(folder), order)
            parent = None
            if not is_root(folder):
                parent = describe_directory(parent_path(folder))

        extensions = self._config.filters.get(filter_name or '')
        files = entries
        if extensions is not None:
            files = [
                entry for entry in entries
                if not entry.is_directory and entry.extension in extensions
            ]

        return FolderListing(
            path=folder,
            files=files,
            filters=self._available_filters(entries),
            parent=parent,
            breadcrumbs=breadcrumbs(folder),
            buttons=dict(self._config.buttons),
        )

    def create_folder(self, name: str, parent: str | None) -> FileDescriptor:
        """Create a folder inside a parent folder.

        Args:
            name: New folder name (sanitized).
            parent: Existing parent folder path.

        Returns:
            Descriptor of the new folder.

        Raises:
            ValidationError: If the name is unusable.
            PathNotFoundError: If the parent does not exist.
            PathAlreadyExistsError: If the target path exists.
        """
        parent = normalize_path(parent)
        folder_name = fix_dirname(name)
        path = join_path(parent, folder_name)

        with self._storage_errors('make_directory', path):
            if not self._disk.directory_exists(parent):
                raise PathNotFoundError(parent)
            if self._disk.exists(path):
                raise PathAlreadyExistsError(path)
            self._disk.make_directory(path)

        logger.info('Folder created: %s', path)
        return describe_directory(path)

    def delete_folder(self, path: str) -> None:
        """Delete a folder and everything inside it.

        Args:
            path: Folder path (root is refused).

        Raises:
            ValidationError: If path is root or invalid.
            PathNotFoundError: If the folder does not exist.
        """
        folder = normalize_path(path)
        if is_root(folder):
            raise ValidationError('The root folder cannot be deleted')

        with self._storage_errors('delete_directory', folder):
            if not self._disk.directory_exists(folder):
                raise PathNotFoundError(folder)
            self._disk.delete_directory(folder)

        logger.info('Folder removed: %s', folder)
        self._emit(FolderRemoved(self._disk.name, folder))

    def upload_file(  # noqa: WPS211
        self,
        upload: 'UploadedFile',
        folder: str | None,
        visibility: str = 'public',
        *,
        suppress_events: bool = False,
        rules: Sequence[UploadRule] = (),
    ) -> FileDescriptor:
        """Store an uploaded file in a folder.

        Args:
            upload: Uploaded file.
            folder: Target folder path.
            visibility: 'public' or 'private'.
            suppress_events: Skip jobs and events (used for folder
                uploads, announced once via ``notify_folder_uploaded``).
            rules: Validators run against the upload; all failures are
                reported together.

        Returns:
            Descriptor of the stored file.

        Raises:
            ValidationError: If rules fail or visibility is unknown.
            BackendFailureError: If storage fails; a file stored before
                the failure is removed again.
        """
        folder = normalize_path(folder)
        if visibility not in VISIBILITIES:
            raise ValidationError(f'Unknown visibility: {visibility}')
        self._validate_upload(upload, rules)

        with self._storage_errors('upload', folder):
            filename = self._naming.name(folder, upload)
            saved_path = self._disk.put_file_as(folder, upload, filename)
        logger.info('File uploaded: %s', saved_path)

        try:
            self._disk.set_visibility(saved_path, visibility)
        except Exception as error:
            logger.exception('Failed to set visibility: %s', saved_path)
            self._rollback_upload(saved_path)
            raise BackendFailureError('set_visibility', saved_path) from error

        if not suppress_events:
            dispatch_upload_job(
                self._config,
                self._dispatcher,
                self._disk.name,
                saved_path,
            )
            self._emit(FileUploaded(self._disk.name, saved_path))

        return self._describe(saved_path)

    def notify_folder_uploaded(self, path: str) -> None:
        """Announce that a folder upload finished.

        Args:
            path: Folder that received the files.

        Raises:
            PathNotFoundError: If the folder does not exist.
        """
        folder = normalize_path(path)
        with self._storage_errors('directory_exists', folder):
            if not self._disk.directory_exists(folder):
                raise PathNotFoundError(folder)
        self._emit(FolderUploaded(self._disk.name, folder))

    def download_file(self, path: str) -> 'File':
        """Open a file for download.

        Args:
            path: File path.

        Returns:
            Opened Django file; the caller closes it.

        Raises:
            FeatureDisabledError: If downloads are switched off
                (checked before anything else).
            PathNotFoundError: If the file does not exist.
        """
        if not self._config.is_enabled('download_file'):
            raise FeatureDisabledError('download_file')

        file_path = normalize_path(path)
        with self._storage_errors('download', file_path):
            if not self._disk.file_exists(file_path):
                raise PathNotFoundError(file_path)
            return self._disk.download(file_path)

    def get_file_info(self, path: str) -> FileDescriptor:
        """Describe a file or folder including extra metadata."""
        return self._describe(normalize_path(path), with_extras=True)

    def remove_file(self, path: str) -> None:
        """Delete a single file.

        Args:
            path: File path.

        Raises:
            PathNotFoundError: If the file does not exist.
        """
        file_path = normalize_path(path)
        with self._storage_errors('delete', file_path):
            if not self._disk.file_exists(file_path):
                raise PathNotFoundError(file_path)
            self._disk.delete(file_path)

        logger.info('File removed: %s', file_path)
        self._emit(FileRemoved(self._disk.name, file_path))

    def duplicate_file(self, path: str) -> FileDescriptor:
        """Copy a file next to itself as 'name(N).ext'."""
        file_path = normalize_path(path)
        with self._storage_errors('copy', file_path):
            copy_path = tree_operations.duplicate_file(self._disk, file_path)
        return self._describe(copy_path)

    def rename_file(self, path: str, new_name: str) -> FileDescriptor:
        """Rename a file or folder in place.

        Args:
            path: Existing file or folder.
            new_name: New basename.

        Returns:
            Descriptor of the renamed entry.

        Raises:
            ValidationError: If path is root or new_name is unusable.
            PathNotFoundError: If nothing exists at path.
            PathAlreadyExistsError: If the new name is taken.
            PartialFailureError: If a folder rename copied only some
                files (the original folder is kept).
        """
        source = normalize_path(path)
        if is_root(source):
            raise ValidationError('The root folder cannot be renamed')

        with self._storage_errors('rename', source):
            if self._disk.directory_exists(source):
                destination = tree_operations.rename_subtree(
                    self._disk,
                    source,
                    fix_dirname(new_name),
                )
            elif self._disk.file_exists(source):
                destination = join_path(
                    parent_path(source),
                    fix_filename(new_name),
                )
                if self._disk.exists(destination):
                    raise PathAlreadyExistsError(destination)
                self._disk.move(source, destination)
            else:
                raise PathNotFoundError(source)

        logger.info('Renamed %s -> %s', source, destination)
        return self._describe(destination)

    def move_file(self, old_path: str, new_path: str) -> FileDescriptor:
        """Move a file or folder to a new full path.

        Args:
            old_path: Existing file or folder.
            new_path: Free destination path inside an existing folder.

        Returns:
            Descriptor of the moved entry.

        Raises:
            ValidationError: If either path is root, the destination name
                is unusable, or a folder would move into itself.
            PathNotFoundError: If the source or destination parent
                does not exist.
            PathAlreadyExistsError: If the destination exists.
            PartialFailureError: If a folder move copied only some files.
        """
        source = normalize_path(old_path)
        destination = normalize_path(new_path)
        if is_root(source) or is_root(destination):
            raise ValidationError('The root folder cannot be moved')

        with self._storage_errors('move', source):
            if not self._disk.exists(source):
                raise PathNotFoundError(source)
            is_directory = self._disk.directory_exists(source)
            fix_name = fix_dirname if is_directory else fix_filename
            destination = join_path(
                parent_path(destination),
                fix_name(basename(destination)),
            )
            if self._disk.exists(destination):
                raise PathAlreadyExistsError(destination)
            destination_parent = parent_path(destination)
            if not self._disk.directory_exists(destination_parent):
                raise PathNotFoundError(destination_parent)

            if is_directory:
                tree_operations.move_subtree(self._disk, source, destination)
            else:
                self._disk.move(source, destination)

        logger.info('Moved %s -> %s', source, destination)
        return self._describe(destination)

    def _children(self, folder: str) -> list[FileDescriptor]:
        excluded_folders = set(self._config.except_folders)
        excluded_files = set(self._config.except_files)
        excluded_extensions = set(self._config.except_extensions)

        entries = [
            describe_directory(directory)
            for directory in self._disk.list_directories(folder)
            if directory.rsplit('/', 1)[-1] not in excluded_folders
        ]
        for file_path in self._disk.list_files(folder):
            entry = describe_file(self._disk, file_path)
            if entry.name in excluded_files:
                continue
            if entry.extension in excluded_extensions:
                continue
            entries.append(entry)
        return entries

    def _available_filters(
        self,
        entries: Iterable[FileDescriptor],
    ) -> dict[str, tuple[str, ...]]:
        present = {entry.extension for entry in entries if entry.extension}
        return {
            group: extensions
            for group, extensions in self._config.filters.items()
            if present.intersection(extensions)
        }

    def _describe(
        self,
        path: str,
        *,
        with_extras: bool = False,
    ) -> FileDescriptor:
        with self._storage_errors('describe', path):
            return describe(self._disk, path, with_extras=with_extras)

    def _validate_upload(
        self,
        upload: 'UploadedFile',
        rules: Sequence[UploadRule],
    ) -> None:
        messages: list[str] = []
        for rule in rules:
            try:
                rule(upload)
            except ValidationError as error:
                messages.extend(error.messages)
        if messages:
            logger.info('Upload %s rejected: %s', upload.name, messages)
            raise ValidationError(messages)

    def _rollback_upload(self, path: str) -> None:
        """Delete a stored upload after a later step failed.

        Best effort: a failure here is logged, the original error wins.
        """
        try:
            logger.warning('Rolling back upload, deleting file: %s', path)
            self._disk.delete(path)
        except Exception:
            logger.exception(
                'Failed to rollback upload, orphaned file: %s',
                path,
            )

    @contextlib.contextmanager
    def _storage_errors(self, operation: str, path: str) -> Iterator[None]:
        try:
            yield
        except (FileManagerError, ValidationError):
            raise
        except Exception as error:
            logger.exception('Storage %s failed for %s', operation, path)
            raise BackendFailureError(operation, path) from error
