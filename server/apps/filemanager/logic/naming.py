"""Naming strategies deciding the stored filename of an upload."""

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Final, Protocol, final

from django.utils.crypto import get_random_string
from django.utils.module_loading import import_string

from server.apps.filemanager.exceptions import InvalidConfigError
from server.apps.filemanager.logic.paths import fix_filename, join_path

if TYPE_CHECKING:
    from django.core.files.uploadedfile import UploadedFile

    from server.apps.filemanager.infrastructure.disk import StoragePort

logger = logging.getLogger(__name__)

_RANDOM_SUFFIX_LENGTH: Final = 7


class NamingStrategy(Protocol):
    """Anything that can pick a free filename for an upload."""

    def name(self, folder: str, upload: 'UploadedFile') -> str:
        """Choose the filename for an upload.

        Args:
            folder: Normalized target folder path.
            upload: Incoming file (only ``.name`` is required).

        Returns:
            Filename (single segment) to store the upload under.
        """


def client_filename(upload: 'UploadedFile') -> str:
    """Get the sanitized basename the client sent for an upload.

    Browsers may send relative paths for folder uploads; only the
    last segment is kept.
    """
    raw_name = (upload.name or '').replace('\\', '/')
    return fix_filename(raw_name.rsplit('/', 1)[-1])


def _compose(stem: str, marker: str, suffix: str) -> str:
    return f'{stem}{marker}{suffix}'


@final
class DefaultNamingStrategy:
    """Keep the client name, add a random suffix while it is taken.

    'report.pdf' becomes 'report_a1B2c3D.pdf' if the folder already
    has a 'report.pdf'.
    """

    def __init__(self, disk: 'StoragePort') -> None:
        self._disk = disk

    def name(self, folder: str, upload: 'UploadedFile') -> str:
        original = client_filename(upload)
        path = Path(original)
        filename = original

        while self._disk.exists(join_path(folder, filename)):
            filename = _compose(
                path.stem,
                '_' + get_random_string(_RANDOM_SUFFIX_LENGTH),
                path.suffix,
            )
            logger.debug('Name %s taken, trying %s', original, filename)

        return filename


@final
class TimestampNamingStrategy:
    """Keep the client name, append a UTC timestamp while it is taken.

    'report.pdf' becomes 'report__20260131T143052123456.pdf'.
    """

    def __init__(self, disk: 'StoragePort') -> None:
        self._disk = disk

    def name(self, folder: str, upload: 'UploadedFile') -> str:
        original = client_filename(upload)
        path = Path(original)
        filename = original

        while self._disk.exists(join_path(folder, filename)):
            timestamp = datetime.now(tz=UTC).strftime('%Y%m%dT%H%M%S%f')
            filename = _compose(path.stem, f'__{timestamp}', path.suffix)

        return filename


NAMING_STRATEGIES: Final = {
    'default': DefaultNamingStrategy,
    'timestamp': TimestampNamingStrategy,
}


def get_naming_strategy(selector: str, disk: 'StoragePort') -> NamingStrategy:
    """Resolve the configured naming strategy.

    Args:
        selector: Built-in strategy name or dotted path to a class
            taking the disk as its only argument.
        disk: Storage port the strategy checks names against.

    Returns:
        Strategy instance.

    Raises:
        InvalidConfigError: If the selector cannot be imported.
    """
    strategy_class = NAMING_STRATEGIES.get(selector)
    if strategy_class is None:
        try:
            strategy_class = import_string(selector)
        except ImportError as error:
            raise InvalidConfigError.naming_not_supported(selector) from error
    return strategy_class(disk)
