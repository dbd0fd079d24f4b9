"""Exceptions for file manager app.

Validation problems (bad paths, bad names, failed upload rules) use
``django.core.exceptions.ValidationError``; everything else lives here.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from server.apps.filemanager.logic.tree_operations import CopyReport


class FileManagerError(Exception):
    """Base class for file manager failures."""


class PathNotFoundError(FileManagerError):
    """Raised when a path must exist but does not."""

    def __init__(self, path: str) -> None:
        """Initialize PathNotFoundError.

        Args:
            path: Normalized path that was not found.
        """
        self.path = path
        super().__init__(f'Path not found: {path}')


class PathAlreadyExistsError(FileManagerError):
    """Raised when a path must be free but is already taken."""

    def __init__(self, path: str) -> None:
        """Initialize PathAlreadyExistsError.

        Args:
            path: Normalized path that already exists.
        """
        self.path = path
        super().__init__(f'Path already exists: {path}')


class FeatureDisabledError(FileManagerError):
    """Raised when an operation is switched off in configuration."""

    def __init__(self, feature: str) -> None:
        """Initialize FeatureDisabledError.

        Args:
            feature: Name of the disabled button/feature flag.
        """
        self.feature = feature
        super().__init__(f'Feature is disabled: {feature}')


class BackendFailureError(FileManagerError):
    """Raised when a storage call fails unexpectedly."""

    def __init__(self, operation: str, path: str) -> None:
        """Initialize BackendFailureError.

        Args:
            operation: Storage operation that failed (e.g. 'copy').
            path: Path the operation was applied to.
        """
        self.operation = operation
        self.path = path
        super().__init__(f'Storage {operation} failed for {path}')


class PartialFailureError(FileManagerError):
    """Raised when a subtree copy did not copy every file.

    The source tree is left untouched; the destination may hold
    some of the copies and needs a retry or manual cleanup.
    """

    def __init__(self, report: 'CopyReport') -> None:
        """Initialize PartialFailureError.

        Args:
            report: Outcome of the subtree copy.
        """
        self.report = report
        super().__init__(
            f'Copied {report.copied} of {report.total} files from '
            f'{report.source} to {report.destination}; source kept',
        )


class InvalidConfigError(FileManagerError):
    """Raised when file manager settings point at something unusable."""

    @classmethod
    def disk_not_supported(cls, disk: str) -> 'InvalidConfigError':
        """Build error for an unknown STORAGES alias."""
        return cls(f'Storage disk is not configured: {disk}')

    @classmethod
    def naming_not_supported(cls, naming: str) -> 'InvalidConfigError':
        """Build error for an unknown naming strategy selector."""
        return cls(f'Naming strategy cannot be loaded: {naming}')
