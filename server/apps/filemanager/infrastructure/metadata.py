"""Metadata extraction and file descriptors."""

import dataclasses
import hashlib
import logging
import mimetypes
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, BinaryIO, Final, final

from PIL import Image

from server.apps.filemanager.exceptions import PathNotFoundError

if TYPE_CHECKING:
    from server.apps.filemanager.infrastructure.disk import StoragePort

logger = logging.getLogger(__name__)

_CHUNK_SIZE: Final = 8192  # 8KB chunks for checksum calculation

FOLDER_MIME_CLASS: Final = 'folder'
FOLDER_MIME_TYPE: Final = 'inode/directory'
OTHER_MIME_CLASS: Final = 'other'

_MIME_CLASSES: Final = {
    'image': (
        'jpg', 'jpeg', 'png', 'gif', 'bmp', 'tif', 'tiff', 'webp',
        'svg', 'ico', 'heic', 'avif',
    ),
    'video': ('mp4', 'm4v', 'avi', 'mov', 'mkv', 'webm', 'mpeg', 'mpg', 'wmv'),
    'audio': ('mp3', 'wav', 'ogg', 'oga', 'flac', 'aac', 'm4a', 'wma'),
    'document': (
        'txt', 'md', 'pdf', 'doc', 'docx', 'xls', 'xlsx', 'ppt', 'pptx',
        'odt', 'ods', 'odp', 'csv', 'rtf', 'json', 'xml', 'html',
    ),
    'archive': ('zip', 'rar', 'tar', 'gz', 'tgz', 'bz2', 'xz', '7z'),
}

_EXTENSION_TO_CLASS: Final = {
    extension: mime_class
    for mime_class, extensions in _MIME_CLASSES.items()
    for extension in extensions
}

# Pillow cannot rasterize these, skip dimension extraction
_VECTOR_EXTENSIONS: Final = frozenset(('svg',))


@final
@dataclasses.dataclass(frozen=True, kw_only=True)
class FileDescriptor:
    """Uniform description of a file or directory in storage.

    Built fresh from storage on every read and never updated;
    re-describe the path after any change.
    """

    name: str
    path: str
    extension: str
    is_directory: bool
    size: int
    mime_type: str
    mime_class: str
    last_modified: datetime | None
    visibility: str
    extras: dict[str, Any] = dataclasses.field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON friendly dictionary."""
        return {
            'name': self.name,
            'path': self.path,
            'ext': self.extension,
            'type': 'dir' if self.is_directory else 'file',
            'size': self.size,
            'mime': self.mime_type,
            'mime_class': self.mime_class,
            'last_modified': (
                self.last_modified.isoformat() if self.last_modified else None
            ),
            'visibility': self.visibility,
            **self.extras,
        }


def detect_mime_type(filename: str) -> str:
    """Detect MIME type from filename.

    Uses Python's built-in mimetypes module to guess MIME type
    from filename extension.

    Args:
        filename: Filename with extension.

    Returns:
        MIME type string (e.g., 'image/jpeg', 'application/pdf').
        Returns 'application/octet-stream' if type cannot be determined.
    """
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type is None:
        return 'application/octet-stream'
    return mime_type


def classify_mime(extension: str) -> str:
    """Map an extension to a coarse category.

    Args:
        extension: Extension without dot, any case.

    Returns:
        One of image, video, audio, document, archive or other.
    """
    return _EXTENSION_TO_CLASS.get(extension.lower(), OTHER_MIME_CLASS)


def calculate_checksum(file_obj: BinaryIO) -> str:
    """Calculate SHA256 checksum of file.

    Reads file in chunks to handle large files efficiently.
    Resets file pointer to beginning after calculation.

    Args:
        file_obj: File-like object to checksum.

    Returns:
        Hex-encoded SHA256 hash string.
    """
    sha256_hash = hashlib.sha256()

    file_obj.seek(0)
    for chunk in iter(lambda: file_obj.read(_CHUNK_SIZE), b''):
        sha256_hash.update(chunk)
    file_obj.seek(0)

    return sha256_hash.hexdigest()


def read_image_dimensions(file_obj: BinaryIO) -> tuple[int, int]:
    """Read width and height of an image without decoding pixels.

    Args:
        file_obj: File-like object holding image bytes.

    Returns:
        (width, height) tuple.

    Raises:
        PIL.UnidentifiedImageError: If the bytes are not an image.
    """
    file_obj.seek(0)
    with Image.open(file_obj) as image:
        return image.size


def extract_filename(path: str) -> str:
    """Extract filename from path.

    Args:
        path: Full path (e.g., '/documents/test.pdf').

    Returns:
        Filename (e.g., 'test.pdf'); empty string for root.
    """
    return Path(path).name


def get_file_extension(filename: str) -> str:
    """Get file extension from filename.

    Args:
        filename: Filename (e.g., 'document.pdf').

    Returns:
        Extension without dot, lowercase (e.g., 'pdf').
        Returns empty string if no extension.
    """
    extension = Path(filename).suffix
    return extension.lstrip('.').lower()


def describe(
    disk: 'StoragePort',
    path: str,
    *,
    with_extras: bool = False,
) -> FileDescriptor:
    """Build a descriptor for a path.

    Args:
        disk: Storage port to read from.
        path: Normalized path of a file or directory.
        with_extras: Also collect checksum, URL and image dimensions.
            Each extra is best effort and omitted if it cannot be read.

    Returns:
        FileDescriptor for the path.

    Raises:
        PathNotFoundError: If nothing exists at the path.
    """
    if disk.directory_exists(path):
        return describe_directory(path)
    if not disk.file_exists(path):
        raise PathNotFoundError(path)
    return describe_file(disk, path, with_extras=with_extras)


def describe_directory(path: str) -> FileDescriptor:
    """Build a descriptor for a known directory.

    Object stores keep no directory timestamps, so none is reported.
    """
    return FileDescriptor(
        name=extract_filename(path),
        path=path,
        extension='',
        is_directory=True,
        size=0,
        mime_type=FOLDER_MIME_TYPE,
        mime_class=FOLDER_MIME_CLASS,
        last_modified=None,
        visibility='public',
    )


def describe_file(
    disk: 'StoragePort',
    path: str,
    *,
    with_extras: bool = False,
) -> FileDescriptor:
    """Build a descriptor for a known file."""
    name = extract_filename(path)
    extension = get_file_extension(name)
    extras = _collect_extras(disk, path, extension) if with_extras else {}

    return FileDescriptor(
        name=name,
        path=path,
        extension=extension,
        is_directory=False,
        size=disk.size(path),
        mime_type=detect_mime_type(name),
        mime_class=classify_mime(extension),
        last_modified=disk.last_modified(path),
        visibility=disk.get_visibility(path),
        extras=extras,
    )


def _collect_extras(
    disk: 'StoragePort',
    path: str,
    extension: str,
) -> dict[str, Any]:
    extras: dict[str, Any] = {}

    try:
        extras['url'] = disk.url(path)
    except Exception:
        # Best effort: some storages cannot build URLs
        logger.exception('Failed to build URL for %s', path)

    try:
        with disk.open(path) as file_obj:
            extras['checksum_sha256'] = calculate_checksum(file_obj)
            if classify_mime(extension) == 'image' and (
                extension not in _VECTOR_EXTENSIONS
            ):
                width, height = read_image_dimensions(file_obj)
                extras['width'] = width
                extras['height'] = height
    except Exception:
        logger.exception('Failed to read extra metadata for %s', path)

    return extras
