"""Custom storage backend for S3-compatible storage."""

import logging
from typing import Any, Final, final

from typing_extensions import override

from storages.backends.s3 import S3Storage
from storages.utils import clean_name

logger = logging.getLogger(__name__)

_ALL_USERS_URI: Final = 'http://acs.amazonaws.com/groups/global/AllUsers'

_ACL_BY_VISIBILITY: Final = {
    'public': 'public-read',
    'private': 'private',
}


@final
class FileStorage(S3Storage):
    """S3 storage backend for file manager disks.

    Extends django-storages S3Storage with:
    - Server-side copy and move (no download/upload round trip)
    - Public/private visibility mapped onto canned ACLs
    - Enhanced error logging
    """

    @override
    def save(  # noqa: WPS211
        self,
        name: str,
        content: Any,
        max_length: int | None = None,
    ) -> str:
        """Save file to S3 with error handling and logging.

        Args:
            name: Storage path for the file.
            content: File content (file-like object).
            max_length: Optional maximum length for the filename.

        Returns:
            Actual storage path used (may differ from name if conflicts).

        Raises:
            Exception: If S3 upload fails.
        """
        try:
            logger.info('Uploading file to storage: %s', name)
            saved_name = super().save(name, content, max_length)
            logger.info('Successfully uploaded file: %s', saved_name)
        except Exception:
            logger.exception('Failed to upload file to storage: %s', name)
            raise
        else:
            return saved_name

    @override
    def delete(self, name: str) -> None:
        """Delete file from S3 with error handling and logging.

        Args:
            name: Storage path of file to delete.

        Raises:
            Exception: If S3 delete fails.
        """
        try:
            logger.info('Deleting file from storage: %s', name)
            super().delete(name)
            logger.info('Successfully deleted file: %s', name)
        except Exception:
            logger.exception('Failed to delete file from storage: %s', name)
            raise

    def copy_object(self, source: str, destination: str) -> None:
        """Copy an object server-side.

        Args:
            source: Source storage path.
            destination: Destination storage path (overwritten if present).

        Raises:
            Exception: If the S3 copy fails.
        """
        copy_source = {
            'Bucket': self.bucket_name,
            'Key': self._key(source),
        }
        try:
            logger.info('Copying file: %s -> %s', source, destination)
            self.bucket.copy(copy_source, self._key(destination))
        except Exception:
            logger.exception('Copy failed: %s -> %s', source, destination)
            raise

    def move_object(self, source: str, destination: str) -> None:
        """Move/rename an object in S3 storage.

        S3 doesn't support native rename, so this performs a server-side
        copy followed by deletion of the source.

        Note: This operation is not atomic. If copy succeeds but delete
        fails, both files will exist (source becomes orphaned). No data
        is lost.

        Args:
            source: Source storage path.
            destination: Destination storage path.

        Raises:
            Exception: If copy or delete fails.
        """
        try:
            logger.info('Moving file: %s -> %s', source, destination)
            self.copy_object(source, destination)
            self.delete(source)
            logger.info('Moved file: %s -> %s', source, destination)
        except Exception:
            logger.exception('Move failed: %s -> %s', source, destination)
            raise

    def set_visibility(self, name: str, visibility: str) -> None:
        """Apply a canned ACL matching the visibility.

        Args:
            name: Storage path of the object.
            visibility: 'public' or 'private'.

        Raises:
            KeyError: If visibility is unknown.
        """
        acl = _ACL_BY_VISIBILITY[visibility]
        logger.info('Setting visibility of %s to %s', name, visibility)
        self.bucket.Object(self._key(name)).Acl().put(ACL=acl)

    def get_visibility(self, name: str) -> str:
        """Read visibility back from the object ACL.

        Args:
            name: Storage path of the object.

        Returns:
            'public' if all users may read the object, 'private' otherwise.
        """
        grants = self.bucket.Object(self._key(name)).Acl().grants
        for grant in grants:
            grantee = grant.get('Grantee', {})
            if (
                grantee.get('URI') == _ALL_USERS_URI
                and grant.get('Permission') in {'READ', 'FULL_CONTROL'}
            ):
                return 'public'
        return 'private'

    def _key(self, name: str) -> str:
        return self._normalize_name(clean_name(name))
