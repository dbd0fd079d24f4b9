"""Typed view of the ``FILEMANAGER`` setting."""

import dataclasses
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Final, final

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

SORT_ORDERS: Final = ('name', 'size', 'date', 'mime')

_DEFAULT_BUTTONS: Final = MappingProxyType({
    'create_folder': True,
    'upload_button': True,
    'select_multiple': True,
    'upload_drag': True,
    'rename_folder': True,
    'delete_folder': True,
    'rename_file': True,
    'delete_file': True,
    'download_file': True,
})


def _freeze_filters(
    filters: Mapping[str, Any],
) -> Mapping[str, tuple[str, ...]]:
    return MappingProxyType({
        group: tuple(extension.lower() for extension in extensions)
        for group, extensions in filters.items()
    })


@final
@dataclasses.dataclass(frozen=True, kw_only=True)
class FileManagerConfig:
    """Read-only file manager configuration.

    Built once per orchestrator; the core never looks at Django settings
    directly, so tests can pass a config object around instead.
    """

    disk: str = 'default'
    order: str = 'mime'
    filter: str | None = None
    buttons: Mapping[str, bool] = dataclasses.field(
        default_factory=lambda: _DEFAULT_BUTTONS,
    )
    filters: Mapping[str, tuple[str, ...]] = dataclasses.field(
        default_factory=lambda: MappingProxyType({}),
    )
    jobs: Mapping[str, str] = dataclasses.field(
        default_factory=lambda: MappingProxyType({}),
    )
    queue_name: str | None = None
    naming: str = 'default'
    except_files: tuple[str, ...] = ('.DS_Store',)
    except_folders: tuple[str, ...] = ()
    except_extensions: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Validate and freeze the collection fields."""
        if self.order not in SORT_ORDERS:
            raise ImproperlyConfigured(
                f'FILEMANAGER order must be one of {SORT_ORDERS}, '
                f'got {self.order!r}',
            )
        # frozen dataclass: bypass __setattr__ for normalization
        object.__setattr__(
            self,
            'buttons',
            MappingProxyType({**_DEFAULT_BUTTONS, **self.buttons}),
        )
        object.__setattr__(self, 'filters', _freeze_filters(self.filters))
        object.__setattr__(self, 'jobs', MappingProxyType(dict(self.jobs)))
        object.__setattr__(self, 'except_files', tuple(self.except_files))
        object.__setattr__(
            self,
            'except_folders',
            tuple(self.except_folders),
        )
        object.__setattr__(
            self,
            'except_extensions',
            tuple(ext.lower() for ext in self.except_extensions),
        )

    @classmethod
    def from_settings(cls, **overrides: Any) -> 'FileManagerConfig':
        """Build config from ``settings.FILEMANAGER``.

        Args:
            overrides: Values taking precedence over the setting.

        Returns:
            FileManagerConfig instance.

        Raises:
            ImproperlyConfigured: If the setting has unknown keys.
        """
        raw = {**getattr(settings, 'FILEMANAGER', {}), **overrides}
        known = {field.name for field in dataclasses.fields(cls)}
        unknown = sorted(set(raw) - known)
        if unknown:
            raise ImproperlyConfigured(
                f'Unknown FILEMANAGER settings: {", ".join(unknown)}',
            )
        return cls(**raw)

    def is_enabled(self, button: str) -> bool:
        """Check whether a button/feature flag is switched on."""
        return bool(self.buttons.get(button, False))

    def filter_group_for(self, extension: str) -> str | None:
        """Find the first filter group listing the extension.

        Args:
            extension: Extension without dot, any case.

        Returns:
            Group name, or None if no group lists it.
        """
        extension = extension.lower()
        for group, extensions in self.filters.items():
            if extension in extensions:
                return group
        return None
