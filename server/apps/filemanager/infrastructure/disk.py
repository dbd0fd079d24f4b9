"""Storage port: directory-aware adapter over Django storages.

Django storages only know about files. The file manager needs
directories (listing, creating, recursive deletes) and visibility,
so ``Disk`` layers those on top of any ``Storage``:

- Paths are user facing (``/docs/report.pdf``); storage keys are
  the same without the leading slash (``docs/report.pdf``).
- Empty folders are kept alive with a hidden marker file, since
  object stores have no directories of their own.
- Server-side copy/move/visibility are used when the backend offers
  them (see ``FileStorage``), generic fallbacks otherwise.
"""

import logging
import stat
from datetime import datetime
from pathlib import Path
from typing import Final, Protocol, final

from django.core.files.base import ContentFile, File
from django.core.files.storage import InvalidStorageError, Storage, storages

from server.apps.filemanager.exceptions import InvalidConfigError

logger = logging.getLogger(__name__)

# Marker file keeping empty folders visible on object storage
FOLDER_MARKER_NAME: Final = '.folder'

_PATH_SEPARATOR: Final = '/'

_FILE_MODES: Final = {
    'public': 0o644,
    'private': 0o600,
}


class StoragePort(Protocol):
    """Capabilities the file manager core needs from a storage backend."""

    @property
    def name(self) -> str:
        """Disk identifier reported in events and jobs."""

    def exists(self, path: str) -> bool:
        """Check whether a file or directory exists."""

    def directory_exists(self, path: str) -> bool:
        """Check whether a directory exists."""

    def file_exists(self, path: str) -> bool:
        """Check whether a file exists."""

    def list_files(self, path: str) -> list[str]:
        """List paths of files directly inside a directory."""

    def list_directories(self, path: str) -> list[str]:
        """List paths of directories directly inside a directory."""

    def make_directory(self, path: str) -> None:
        """Create a directory."""

    def delete_directory(self, path: str) -> None:
        """Delete a directory and everything below it."""

    def delete(self, path: str) -> None:
        """Delete a file."""

    def copy(self, source: str, destination: str) -> str:
        """Copy a file, returning the destination path."""

    def move(self, source: str, destination: str) -> str:
        """Move a file, returning the destination path."""

    def put_file_as(self, folder: str, content: File, name: str) -> str:
        """Write content as ``folder/name``, returning the saved path."""

    def set_visibility(self, path: str, visibility: str) -> None:
        """Mark a file public or private."""

    def get_visibility(self, path: str) -> str:
        """Read back the visibility of a file."""

    def download(self, path: str) -> File:
        """Open a file for streaming."""

    def open(self, path: str) -> File:
        """Open a file for reading."""

    def size(self, path: str) -> int:
        """Get file size in bytes."""

    def last_modified(self, path: str) -> datetime:
        """Get file modification time."""

    def url(self, path: str) -> str:
        """Get a URL serving the file."""


def to_storage_key(path: str) -> str:
    """Convert a user facing path to a storage key.

    Args:
        path: Normalized path (e.g., /documents/file.pdf).

    Returns:
        Storage key (e.g., documents/file.pdf); empty string for root.
    """
    return path.strip(_PATH_SEPARATOR)


def to_path(storage_key: str) -> str:
    """Convert a storage key back to a user facing path.

    Args:
        storage_key: Storage key (e.g., documents/file.pdf).

    Returns:
        Path with leading slash (e.g., /documents/file.pdf).
    """
    return _PATH_SEPARATOR + storage_key.strip(_PATH_SEPARATOR)


def _split(path: str) -> tuple[str, str]:
    key = to_storage_key(path)
    if _PATH_SEPARATOR not in key:
        return '', key
    parent, name = key.rsplit(_PATH_SEPARATOR, 1)
    return parent, name


def _join(parent_key: str, name: str) -> str:
    if not parent_key:
        return name
    return f'{parent_key}/{name}'


@final
class Disk:
    """StoragePort implementation backed by a Django ``Storage``."""

    def __init__(self, storage: Storage, name: str = 'default') -> None:
        """Wrap a Django storage.

        Args:
            storage: Any Django storage backend.
            name: Disk identifier (the STORAGES alias).
        """
        self._storage = storage
        self._name = name

    @property
    def name(self) -> str:
        """Get the disk identifier."""
        return self._name

    @property
    def storage(self) -> Storage:
        """Get the wrapped Django storage."""
        return self._storage

    def exists(self, path: str) -> bool:
        return self.directory_exists(path) or self.file_exists(path)

    def directory_exists(self, path: str) -> bool:
        parent, name = _split(path)
        if not name:
            return True
        directories, _ = self._listdir(parent)
        return name in directories

    def file_exists(self, path: str) -> bool:
        parent, name = _split(path)
        if not name or name == FOLDER_MARKER_NAME:
            return False
        _, files = self._listdir(parent)
        return name in files

    def list_files(self, path: str) -> list[str]:
        key = to_storage_key(path)
        _, files = self._listdir(key)
        return [
            to_path(_join(key, name))
            for name in sorted(files)
            if name != FOLDER_MARKER_NAME
        ]

    def list_directories(self, path: str) -> list[str]:
        key = to_storage_key(path)
        directories, _ = self._listdir(key)
        return [to_path(_join(key, name)) for name in sorted(directories)]

    def make_directory(self, path: str) -> None:
        """Create a directory by writing its marker file.

        Parent directories appear implicitly, as with any storage key.

        Args:
            path: Directory path.
        """
        marker_key = _join(to_storage_key(path), FOLDER_MARKER_NAME)
        if self._storage.exists(marker_key):
            return
        logger.info('Creating directory: %s', path)
        self._storage.save(marker_key, ContentFile(b''))

    def delete_directory(self, path: str) -> None:
        """Delete a directory recursively, deepest entries first.

        Args:
            path: Directory path; root is emptied but not removed.
        """
        key = to_storage_key(path)
        for child in self.list_directories(path):
            self.delete_directory(child)
        _, files = self._listdir(key)
        for name in files:
            self._storage.delete(_join(key, name))
        if key:
            # Local disks keep an empty directory behind
            self._storage.delete(key)
        logger.info('Deleted directory: %s', path)

    def delete(self, path: str) -> None:
        self._storage.delete(to_storage_key(path))

    def copy(self, source: str, destination: str) -> str:
        """Copy a file, overwriting the destination.

        Args:
            source: Source file path.
            destination: Destination file path.

        Returns:
            Path the copy was saved under.
        """
        source_key = to_storage_key(source)
        destination_key = to_storage_key(destination)

        copy_object = getattr(self._storage, 'copy_object', None)
        if copy_object is not None:
            copy_object(source_key, destination_key)
            return to_path(destination_key)

        with self._storage.open(source_key, 'rb') as source_file:
            if self._storage.exists(destination_key):
                self._storage.delete(destination_key)
            saved_key = self._storage.save(destination_key, source_file)
        if saved_key != destination_key:
            logger.warning(
                'Copy of %s saved under another name: %s',
                source,
                saved_key,
            )
        return to_path(saved_key)

    def move(self, source: str, destination: str) -> str:
        move_object = getattr(self._storage, 'move_object', None)
        if move_object is not None:
            destination_key = to_storage_key(destination)
            move_object(to_storage_key(source), destination_key)
            return to_path(destination_key)

        saved_path = self.copy(source, destination)
        self.delete(source)
        return saved_path

    def put_file_as(self, folder: str, content: File, name: str) -> str:
        """Save uploaded content into a folder under a chosen name.

        Args:
            folder: Target folder path.
            content: Django file (usually an ``UploadedFile``).
            name: Filename decided by the naming strategy.

        Returns:
            Path actually saved (storage may still pick another name
            if the chosen one was taken in the meantime).
        """
        key = _join(to_storage_key(folder), name)
        saved_key = self._storage.save(key, content)
        return to_path(saved_key)

    def set_visibility(self, path: str, visibility: str) -> None:
        key = to_storage_key(path)
        setter = getattr(self._storage, 'set_visibility', None)
        if setter is not None:
            setter(key, visibility)
            return

        local_path = self._local_path(key)
        if local_path is None:
            logger.debug(
                'Visibility not supported by %s, ignoring for %s',
                type(self._storage).__name__,
                path,
            )
            return
        local_path.chmod(_FILE_MODES[visibility])

    def get_visibility(self, path: str) -> str:
        key = to_storage_key(path)
        getter = getattr(self._storage, 'get_visibility', None)
        if getter is not None:
            return getter(key)

        local_path = self._local_path(key)
        if local_path is None:
            return 'public'
        if local_path.stat().st_mode & stat.S_IROTH:
            return 'public'
        return 'private'

    def download(self, path: str) -> File:
        return self.open(path)

    def open(self, path: str) -> File:
        return self._storage.open(to_storage_key(path), 'rb')

    def size(self, path: str) -> int:
        return self._storage.size(to_storage_key(path))

    def last_modified(self, path: str) -> datetime:
        return self._storage.get_modified_time(to_storage_key(path))

    def url(self, path: str) -> str:
        return self._storage.url(to_storage_key(path))

    def _listdir(self, key: str) -> tuple[list[str], list[str]]:
        try:
            directories, files = self._storage.listdir(key)
        except (FileNotFoundError, NotADirectoryError):
            return [], []
        return list(directories), list(files)

    def _local_path(self, key: str) -> Path | None:
        try:
            local_path = Path(self._storage.path(key))
        except NotImplementedError:
            return None
        # In-memory storages report paths that are not on disk
        if not local_path.exists():
            return None
        return local_path


def get_disk(name: str) -> Disk:
    """Build a disk for a configured ``STORAGES`` alias.

    Args:
        name: STORAGES alias (e.g., 'default', 's3').

    Returns:
        Disk wrapping the aliased storage.

    Raises:
        InvalidConfigError: If no storage is configured under the alias.
    """
    try:
        storage = storages[name]
    except InvalidStorageError as error:
        raise InvalidConfigError.disk_not_supported(name) from error
    return Disk(storage, name=name)
