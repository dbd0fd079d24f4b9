"""Upload validation rules.

A rule is any callable taking the uploaded file and raising
``ValidationError``; Django's own ``FileExtensionValidator`` works too.
"""

from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError
from django.template.defaultfilters import filesizeformat
from django.utils.deconstruct import deconstructible

if TYPE_CHECKING:
    from django.core.files.uploadedfile import UploadedFile


@deconstructible
class MaxFileSizeValidator:
    """Reject uploads larger than a limit."""

    code = 'file_too_large'

    def __init__(self, max_bytes: int) -> None:
        self.max_bytes = max_bytes

    def __call__(self, upload: 'UploadedFile') -> None:
        if upload.size is not None and upload.size > self.max_bytes:
            raise ValidationError(
                'File %(name)s is %(size)s, the limit is %(limit)s.',
                code=self.code,
                params={
                    'name': upload.name,
                    'size': filesizeformat(upload.size),
                    'limit': filesizeformat(self.max_bytes),
                },
            )

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, MaxFileSizeValidator)
            and self.max_bytes == other.max_bytes
        )

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.max_bytes))


@deconstructible
class MinFileSizeValidator:
    """Reject uploads smaller than a limit (e.g. empty files)."""

    code = 'file_too_small'

    def __init__(self, min_bytes: int) -> None:
        self.min_bytes = min_bytes

    def __call__(self, upload: 'UploadedFile') -> None:
        if upload.size is None or upload.size < self.min_bytes:
            raise ValidationError(
                'File %(name)s is smaller than %(limit)s.',
                code=self.code,
                params={
                    'name': upload.name,
                    'limit': filesizeformat(self.min_bytes),
                },
            )

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, MinFileSizeValidator)
            and self.min_bytes == other.min_bytes
        )

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.min_bytes))
