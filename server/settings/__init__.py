"""Django settings assembled from the components package.

Each component owns one concern (core Django, storages, logging,
file manager). Order matters: later components may read earlier values.
"""

from server.settings.components.common import *  # noqa: F403
from server.settings.components.logging import *  # noqa: F403
from server.settings.components.storages import *  # noqa: F403
from server.settings.components.filemanager import *  # noqa: F403
