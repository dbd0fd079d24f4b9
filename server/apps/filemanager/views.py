"""JSON endpoints for the file manager UI.

Views only parse parameters, call ``FileManager`` and shape the
response; errors become ``{'success': False, 'message': ...}``.
"""

import functools
import logging
from collections.abc import Callable
from http import HTTPStatus
from typing import Final

from django.core.exceptions import ValidationError
from django.http import FileResponse, HttpRequest, HttpResponse, JsonResponse
from django.views.decorators.http import require_GET, require_POST

from server.apps.filemanager.exceptions import (
    BackendFailureError,
    FeatureDisabledError,
    FileManagerError,
    InvalidConfigError,
    PartialFailureError,
    PathAlreadyExistsError,
    PathNotFoundError,
)
from server.apps.filemanager.logic.file_manager import FileManager
from server.apps.filemanager.logic.paths import basename, normalize_path

logger = logging.getLogger(__name__)

_ERROR_STATUSES: Final = (
    (PathNotFoundError, HTTPStatus.NOT_FOUND),
    (PathAlreadyExistsError, HTTPStatus.CONFLICT),
    (FeatureDisabledError, HTTPStatus.FORBIDDEN),
    (PartialFailureError, HTTPStatus.INTERNAL_SERVER_ERROR),
    (BackendFailureError, HTTPStatus.INTERNAL_SERVER_ERROR),
    (InvalidConfigError, HTTPStatus.INTERNAL_SERVER_ERROR),
)

View = Callable[..., HttpResponse]


def _error_response(message: str | list[str], status: int) -> JsonResponse:
    return JsonResponse(
        {'success': False, 'message': message},
        status=status,
    )


def json_errors(view: View) -> View:
    """Turn file manager errors into JSON error responses."""

    @functools.wraps(view)
    def wrapper(
        request: HttpRequest,
        *args: object,
        **kwargs: object,
    ) -> HttpResponse:
        try:
            return view(request, *args, **kwargs)
        except ValidationError as error:
            return _error_response(
                error.messages,
                HTTPStatus.UNPROCESSABLE_ENTITY,
            )
        except FileManagerError as error:
            for error_class, status in _ERROR_STATUSES:
                if isinstance(error, error_class):
                    return _error_response(str(error), status)
            logger.exception('Unmapped file manager error')
            return _error_response(
                str(error),
                HTTPStatus.INTERNAL_SERVER_ERROR,
            )

    return wrapper


def _manager() -> FileManager:
    return FileManager.from_settings()


@require_GET
@json_errors
def folder_data(request: HttpRequest) -> JsonResponse:
    """List a folder: files, filters, parent, breadcrumbs and buttons."""
    listing = _manager().list_folder(
        request.GET.get('folder'),
        sort=request.GET.get('sort') or None,
        filter_name=request.GET.get('filter'),
    )
    return JsonResponse(listing.to_dict())


@require_POST
@json_errors
def create_folder(request: HttpRequest) -> JsonResponse:
    descriptor = _manager().create_folder(
        request.POST.get('folder', ''),
        request.POST.get('current'),
    )
    return JsonResponse({'success': True, 'data': descriptor.to_dict()})


@require_POST
@json_errors
def delete_folder(request: HttpRequest) -> JsonResponse:
    _manager().delete_folder(request.POST.get('current', ''))
    return JsonResponse({'success': True})


@require_POST
@json_errors
def upload_file(request: HttpRequest) -> JsonResponse:
    """Store one uploaded file.

    ``uploading_folder`` marks a file that is part of a folder upload:
    its job and event are skipped until ``folder_uploaded`` is called.
    """
    upload = request.FILES.get('file')
    if upload is None:
        raise ValidationError('No file was uploaded')

    descriptor = _manager().upload_file(
        upload,
        request.POST.get('current'),
        request.POST.get('visibility', 'public'),
        suppress_events=request.POST.get('uploading_folder') in {'1', 'true'},
    )
    return JsonResponse({
        'success': True,
        'name': descriptor.name,
        'data': descriptor.to_dict(),
    })


@require_POST
@json_errors
def folder_uploaded(request: HttpRequest) -> JsonResponse:
    _manager().notify_folder_uploaded(request.POST.get('current', ''))
    return JsonResponse({'success': True})


@require_GET
@json_errors
def file_info(request: HttpRequest) -> JsonResponse:
    descriptor = _manager().get_file_info(request.GET.get('file', ''))
    return JsonResponse(descriptor.to_dict())


@require_POST
@json_errors
def remove_file(request: HttpRequest) -> JsonResponse:
    _manager().remove_file(request.POST.get('file', ''))
    return JsonResponse({'success': True})


@require_POST
@json_errors
def duplicate_file(request: HttpRequest) -> JsonResponse:
    descriptor = _manager().duplicate_file(request.POST.get('file', ''))
    return JsonResponse({'success': True, 'data': descriptor.to_dict()})


@require_POST
@json_errors
def rename_file(request: HttpRequest) -> JsonResponse:
    descriptor = _manager().rename_file(
        request.POST.get('file', ''),
        request.POST.get('name', ''),
    )
    return JsonResponse({'success': True, 'data': descriptor.to_dict()})


@require_POST
@json_errors
def move_file(request: HttpRequest) -> JsonResponse:
    descriptor = _manager().move_file(
        request.POST.get('old', ''),
        request.POST.get('path', ''),
    )
    return JsonResponse({'success': True, 'data': descriptor.to_dict()})


@require_GET
@json_errors
def download_file(request: HttpRequest) -> FileResponse:
    path = request.GET.get('file', '')
    file_obj = _manager().download_file(path)
    return FileResponse(
        file_obj,
        as_attachment=True,
        filename=basename(normalize_path(path)),
    )
