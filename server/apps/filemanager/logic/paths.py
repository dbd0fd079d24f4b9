"""Path normalization and validation.

User paths look like /documents/report.pdf: forward slashes, one
leading slash, no trailing slash, root is /. Every path coming from
a request goes through ``normalize_path`` before storage is touched.
"""

import re
from typing import TYPE_CHECKING, Final

from django.core.exceptions import ValidationError

from server.apps.filemanager.infrastructure.disk import FOLDER_MARKER_NAME

if TYPE_CHECKING:
    from server.apps.filemanager.infrastructure.disk import StoragePort

ROOT: Final = '/'

_PATH_SEPARATOR: Final = '/'

_TRAVERSAL_SEGMENT: Final = '..'

# Names that can never be used for user files or folders
_RESERVED_NAMES: Final = frozenset((
    '',
    '.',
    _TRAVERSAL_SEGMENT,
    FOLDER_MARKER_NAME,
))

# Characters rejected by at least one supported backend, plus controls
_ILLEGAL_FILENAME_CHARS: Final = re.compile(r'[\\/:*?"<>|\x00-\x1f\x7f]')


def normalize_path(raw: str | None) -> str:
    """Canonicalize a user supplied path.

    Args:
        raw: Path from the request (e.g., 'docs//reports/', '\\docs').

    Returns:
        Normalized path (e.g., '/docs/reports'); '/' for empty input.

    Raises:
        ValidationError: If the path contains a '..' segment, a NUL byte
            or the folder marker name.
    """
    if not raw:
        return ROOT

    if '\x00' in raw:
        raise ValidationError('Path contains a null byte')

    segments = []
    for segment in raw.replace('\\', _PATH_SEPARATOR).split(_PATH_SEPARATOR):
        if segment == _TRAVERSAL_SEGMENT:
            raise ValidationError(f'Path traversal is not allowed: {raw}')
        if segment == FOLDER_MARKER_NAME:
            raise ValidationError(f'Reserved name in path: {raw}')
        if segment in {'', '.'}:
            continue
        segments.append(segment)

    return _PATH_SEPARATOR + _PATH_SEPARATOR.join(segments)


def fix_filename(name: str) -> str:
    """Strip characters that are not allowed in a single path segment.

    Args:
        name: Proposed file or folder name.

    Returns:
        Cleaned name.

    Raises:
        ValidationError: If nothing usable is left or the name is
            reserved for folder markers.
    """
    cleaned = _ILLEGAL_FILENAME_CHARS.sub('', name or '').strip()
    if cleaned in _RESERVED_NAMES:
        raise ValidationError(f'Invalid name: {name!r}')
    return cleaned


def fix_dirname(name: str) -> str:
    """Clean a folder name.

    Same as ``fix_filename``, and also drops leading/trailing dots and
    spaces so folders cannot be hidden or alias '.' and '..'.

    Args:
        name: Proposed folder name.

    Returns:
        Cleaned folder name.

    Raises:
        ValidationError: If nothing usable is left.
    """
    cleaned = fix_filename(name).strip('. ')
    if not cleaned:
        raise ValidationError(f'Invalid folder name: {name!r}')
    return cleaned


def is_root(path: str) -> bool:
    """Check if a normalized path is the root directory."""
    return path == ROOT


def basename(path: str) -> str:
    """Get the last segment of a path; empty string for root."""
    return path.rsplit(_PATH_SEPARATOR, 1)[1]


def parent_path(path: str) -> str:
    """Get the parent of a normalized path.

    Args:
        path: Normalized path (e.g., /documents/reports/file.pdf).

    Returns:
        Parent path (e.g., /documents/reports); root for root-level
        entries and for root itself.
    """
    parent = path.rsplit(_PATH_SEPARATOR, 1)[0]
    return parent or ROOT


def join_path(parent: str, name: str) -> str:
    """Join a normalized parent path and a single segment.

    Args:
        parent: Parent path (e.g., /documents).
        name: Name to append (e.g., file.pdf).

    Returns:
        Joined path (e.g., /documents/file.pdf).
    """
    if is_root(parent):
        return ROOT + name
    return f'{parent}{_PATH_SEPARATOR}{name}'


def is_within(path: str, ancestor: str) -> bool:
    """Check if a path equals an ancestor or lies below it."""
    if is_root(ancestor):
        return True
    return path == ancestor or path.startswith(ancestor + _PATH_SEPARATOR)


def replace_prefix(path: str, old_prefix: str, new_prefix: str) -> str:
    """Move a path from one subtree to another.

    Args:
        path: Path inside old_prefix.
        old_prefix: Subtree the path currently lives in.
        new_prefix: Subtree to map it into.

    Returns:
        The path with old_prefix swapped for new_prefix.
    """
    relative = path[len(old_prefix):].lstrip(_PATH_SEPARATOR)
    if not relative:
        return new_prefix
    return join_path(new_prefix, relative)


def folder_exists(disk: 'StoragePort', path: str) -> bool:
    """Check if a folder exists by looking it up in its parent listing.

    Root returns False: there is no parent to find it in.

    Args:
        disk: Storage port.
        path: Normalized folder path.

    Returns:
        True if the parent lists a directory with this basename.
    """
    if is_root(path):
        return False
    names = {
        basename(directory)
        for directory in disk.list_directories(parent_path(path))
    }
    return basename(path) in names


def breadcrumbs(path: str) -> list[dict[str, str]]:
    """Build breadcrumb entries from root down to a folder.

    Args:
        path: Normalized folder path (e.g., /docs/reports).

    Returns:
        List like [{'name': 'docs', 'path': '/docs'},
        {'name': 'reports', 'path': '/docs/reports'}]; empty for root.
    """
    crumbs = []
    current = ROOT
    for segment in path.split(_PATH_SEPARATOR):
        if not segment:
            continue
        current = join_path(current, segment)
        crumbs.append({'name': segment, 'path': current})
    return crumbs
