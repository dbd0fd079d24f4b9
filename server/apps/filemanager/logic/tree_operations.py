"""Directory tree operations on top of file-level storage calls.

Storages (S3 in particular) cannot rename a directory. Folder rename
and move are built as copy, verify, then delete:

1. Walk the source subtree.
2. Recreate every directory under the destination.
3. Copy every file, counting successes.
4. Delete the source only if every file was copied.

The source is never touched before step 4, so a failure at any point
loses no data. The price is a window where both trees exist, and a
partially filled destination left behind when some copies failed.
"""

import dataclasses
import logging
import re
from collections.abc import Callable
from typing import TYPE_CHECKING, Final, final

from django.core.exceptions import ValidationError

from server.apps.filemanager.exceptions import (
    PartialFailureError,
    PathAlreadyExistsError,
    PathNotFoundError,
)
from server.apps.filemanager.logic.paths import (
    basename,
    is_root,
    is_within,
    join_path,
    parent_path,
    replace_prefix,
)

if TYPE_CHECKING:
    from server.apps.filemanager.infrastructure.disk import StoragePort

logger = logging.getLogger(__name__)

# stem, optional "(N)" duplicate counter, optional extension
_DUPLICATE_PATTERN: Final = re.compile(
    r'^(?P<stem>.+?)(?:\((?P<counter>\d+)\))?(?P<suffix>\.[^.]+)?$',
    re.DOTALL,
)


@final
@dataclasses.dataclass(frozen=True)
class CopyReport:
    """Outcome of a subtree copy."""

    source: str
    destination: str
    total: int
    copied: int
    failed: tuple[str, ...] = ()

    @property
    def complete(self) -> bool:
        """Check if every discovered file was copied."""
        return self.copied == self.total


def collect_subtree(
    disk: 'StoragePort',
    prefix: str,
) -> tuple[list[str], list[str]]:
    """List every directory and file below a prefix.

    Args:
        disk: Storage port.
        prefix: Directory to walk.

    Returns:
        (directories, files): directories include prefix itself and
        come parents first; files are at any depth.
    """
    directories = []
    files = []
    pending = [prefix]

    while pending:
        directory = pending.pop(0)
        directories.append(directory)
        files.extend(disk.list_files(directory))
        pending.extend(disk.list_directories(directory))

    return directories, files


def copy_subtree(
    disk: 'StoragePort',
    source: str,
    destination: str,
) -> CopyReport:
    """Replicate a directory tree under a new prefix.

    Directory creation failures propagate (nothing was copied yet);
    single file copy failures are logged and counted, never retried.

    Args:
        disk: Storage port.
        source: Directory to copy.
        destination: Directory to create as the copy.

    Returns:
        CopyReport with total and copied file counts.
    """
    directories, files = collect_subtree(disk, source)

    logger.info(
        'Copying subtree %s -> %s (%d directories, %d files)',
        source,
        destination,
        len(directories),
        len(files),
    )

    for directory in directories:
        disk.make_directory(replace_prefix(directory, source, destination))

    copied = 0
    failed = []
    for file_path in files:
        target = replace_prefix(file_path, source, destination)
        try:
            disk.copy(file_path, target)
        except Exception:
            logger.exception('Failed to copy %s -> %s', file_path, target)
            failed.append(file_path)
        else:
            copied += 1

    return CopyReport(
        source=source,
        destination=destination,
        total=len(files),
        copied=copied,
        failed=tuple(failed),
    )


def move_subtree(
    disk: 'StoragePort',
    source: str,
    destination: str,
) -> str:
    """Move a directory tree with copy-verify-then-delete.

    Args:
        disk: Storage port.
        source: Existing directory.
        destination: Free path to move it to.

    Returns:
        The destination path.

    Raises:
        ValidationError: If destination is the source or lies inside it.
        PathAlreadyExistsError: If destination already exists.
        PartialFailureError: If some files were not copied. The source
            is kept intact in that case.
    """
    if is_root(source) or is_within(destination, source):
        raise ValidationError(
            f'Cannot move folder {source} into itself ({destination})',
        )
    if disk.exists(destination):
        raise PathAlreadyExistsError(destination)

    report = copy_subtree(disk, source, destination)
    if not report.complete:
        logger.error(
            'Subtree copy incomplete (%d/%d), keeping source %s',
            report.copied,
            report.total,
            source,
        )
        raise PartialFailureError(report)

    disk.delete_directory(source)
    logger.info('Moved subtree %s -> %s', source, destination)
    return destination


def rename_subtree(disk: 'StoragePort', source: str, new_name: str) -> str:
    """Rename a directory in place.

    Args:
        disk: Storage port.
        source: Existing directory.
        new_name: New basename (already sanitized).

    Returns:
        Path of the renamed directory.

    Raises:
        PathAlreadyExistsError: If a sibling with new_name exists.
        PartialFailureError: If some files were not copied.
    """
    destination = join_path(parent_path(source), new_name)
    return move_subtree(disk, source, destination)


def duplicate_name(basename_: str, exists: Callable[[str], bool]) -> str:
    """Pick the next free 'stem(N).ext' name for a duplicate.

    'image.png' -> 'image(1).png', 'image(1).png' -> 'image(2).png',
    skipping counters whose name is taken.

    Args:
        basename_: Name of the file being duplicated.
        exists: Callback telling whether a candidate name is taken.

    Returns:
        First free candidate name.

    Raises:
        ValidationError: If the name cannot be parsed.
    """
    match = _DUPLICATE_PATTERN.match(basename_)
    if match is None:
        raise ValidationError(f'Cannot derive a duplicate name: {basename_!r}')

    stem = match.group('stem')
    suffix = match.group('suffix') or ''
    counter = int(match.group('counter') or 0)

    while True:
        counter += 1
        candidate = f'{stem}({counter}){suffix}'
        if not exists(candidate):
            return candidate


def duplicate_file(disk: 'StoragePort', path: str) -> str:
    """Copy a file next to itself under a numbered name.

    Args:
        disk: Storage port.
        path: Existing file.

    Returns:
        Path of the copy.

    Raises:
        PathNotFoundError: If the path does not exist.
        ValidationError: If the path is a directory (not supported).
    """
    if disk.directory_exists(path):
        raise ValidationError('Duplicating folders is not supported')
    if not disk.file_exists(path):
        raise PathNotFoundError(path)

    folder = parent_path(path)
    new_name = duplicate_name(
        basename(path),
        lambda candidate: disk.file_exists(join_path(folder, candidate)),
    )
    destination = join_path(folder, new_name)

    logger.info('Duplicating file %s -> %s', path, destination)
    return disk.copy(path, destination)
