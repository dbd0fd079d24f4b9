"""Domain events of the file manager, delivered as Django signals.

Receivers get ``disk`` and ``path`` keyword arguments::

    @receiver(file_uploaded)
    def on_upload(sender, disk, path, **kwargs): ...
"""

import dataclasses
import logging
from typing import Final, final

from django.dispatch import Signal

logger = logging.getLogger(__name__)

file_uploaded = Signal()
file_removed = Signal()
folder_uploaded = Signal()
folder_removed = Signal()


@dataclasses.dataclass(frozen=True)
class FileManagerEvent:
    """Something that happened to a path on a disk."""

    disk: str
    path: str


@final
class FileUploaded(FileManagerEvent):
    """A file was stored."""


@final
class FileRemoved(FileManagerEvent):
    """A file was deleted."""


@final
class FolderUploaded(FileManagerEvent):
    """A batch upload of a folder finished."""


@final
class FolderRemoved(FileManagerEvent):
    """A folder and its content were deleted."""


_SIGNALS: Final = {
    FileUploaded: file_uploaded,
    FileRemoved: file_removed,
    FolderUploaded: folder_uploaded,
    FolderRemoved: folder_removed,
}


def send_event(event: FileManagerEvent) -> None:
    """Send the signal matching an event.

    Fire and forget: receiver errors are logged and never reach the
    operation that triggered the event.

    Args:
        event: Event to publish.
    """
    signal = _SIGNALS[type(event)]
    responses = signal.send_robust(
        sender=type(event),
        disk=event.disk,
        path=event.path,
    )
    for receiver, response in responses:
        if isinstance(response, Exception):
            logger.error(
                'Receiver %r failed for %s(%s:%s): %s',
                receiver,
                type(event).__name__,
                event.disk,
                event.path,
                response,
            )
