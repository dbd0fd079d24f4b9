"""Background jobs triggered by uploads.

``FILEMANAGER['jobs']`` maps a filter group (e.g. 'Images') to the
dotted path of a ``FileJob`` subclass. After an upload the job of the
first group listing the file extension is built and dispatched.
"""

import abc
import logging
from typing import TYPE_CHECKING, Protocol, final

from django.utils.module_loading import import_string

from server.apps.filemanager.infrastructure.metadata import (
    get_file_extension,
)

if TYPE_CHECKING:
    from server.apps.filemanager.config import FileManagerConfig

logger = logging.getLogger(__name__)


class FileJob(abc.ABC):
    """Base class for jobs run against one stored file."""

    def __init__(self, disk: str, path: str) -> None:
        """Initialize job.

        Args:
            disk: Disk identifier the file lives on.
            path: Path of the uploaded file.
        """
        self.disk = disk
        self.path = path
        self.queue: str | None = None

    def on_queue(self, queue: str) -> 'FileJob':
        """Assign a named queue, returning the job for chaining."""
        self.queue = queue
        return self

    @abc.abstractmethod
    def handle(self) -> None:
        """Do the work."""


class JobDispatcher(Protocol):
    """Anything that can take a job and run it eventually."""

    def dispatch(self, job: FileJob) -> None:
        """Accept a job for execution."""


@final
class SyncJobDispatcher:
    """Runs jobs inline, right after the upload.

    Job failures are logged, not raised: the upload already succeeded.
    """

    def dispatch(self, job: FileJob) -> None:
        logger.info(
            'Running job %s for %s:%s (queue: %s)',
            type(job).__name__,
            job.disk,
            job.path,
            job.queue or 'default',
        )
        try:
            job.handle()
        except Exception:
            logger.exception(
                'Job %s failed for %s:%s',
                type(job).__name__,
                job.disk,
                job.path,
            )


def build_upload_job(
    config: 'FileManagerConfig',
    disk: str,
    path: str,
) -> FileJob | None:
    """Build the job configured for a file's extension group.

    Args:
        config: File manager configuration.
        disk: Disk identifier.
        path: Path of the uploaded file.

    Returns:
        Job instance, or None when no job is mapped.
    """
    if not config.jobs:
        return None

    group = config.filter_group_for(get_file_extension(path))
    if group is None:
        return None

    jobs = {name.lower(): job for name, job in config.jobs.items()}
    job_path = jobs.get(group.lower())
    if job_path is None:
        return None

    job = import_string(job_path)(disk, path)
    if config.queue_name:
        job.on_queue(config.queue_name)
    return job


def dispatch_upload_job(
    config: 'FileManagerConfig',
    dispatcher: JobDispatcher,
    disk: str,
    path: str,
) -> FileJob | None:
    """Dispatch the job mapped to an uploaded file, if any.

    Args:
        config: File manager configuration.
        dispatcher: Dispatcher receiving the job.
        disk: Disk identifier.
        path: Path of the uploaded file.

    Returns:
        Dispatched job, or None when nothing was mapped.
    """
    job = build_upload_job(config, disk, path)
    if job is None:
        logger.debug('No job mapped for %s', path)
        return None
    dispatcher.dispatch(job)
    return job
