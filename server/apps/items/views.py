"""HTTP views for the items API.

Views only translate between HTTP and the business logic: they parse
and validate input, call ``server.apps.items.logic`` and serialize the
result. Exceptions map to status codes in ``json_api``.
"""

import json
import logging
from collections.abc import Callable
from functools import wraps
from typing import Any, Final

from django.core.exceptions import (
    ObjectDoesNotExist,
    PermissionDenied,
    ValidationError,
)
from django.http import HttpRequest, JsonResponse, QueryDict
from django.http.multipartparser import MultiPartParser
from django.utils.datastructures import MultiValueDict
from django.views.decorators.http import require_http_methods

from server.apps.items.exceptions import StorageFailureError
from server.apps.items.forms import (
    SORT_FIELDS,
    AccessForm,
    ItemCreateForm,
    ItemListForm,
    ItemUpdateForm,
    SharedLinkForm,
)
from server.apps.items.logic.content_pipeline import IncomingContent
from server.apps.items.logic.item_operations import (
    archive_item,
    create_item,
    delete_item,
    restore_item,
    touch_access_time,
    update_access,
    update_item,
)
from server.apps.items.logic.link_operations import (
    create_shared_link,
    get_item_by_link,
    remove_shared_link,
)
from server.apps.items.logic.listing_operations import (
    ItemFilters,
    get_item_detail,
    list_items,
    signed_url_for,
)
from server.apps.items.serializers import (
    serialize_deletion,
    serialize_detail,
    serialize_item,
    serialize_listed,
    serialize_page,
)

logger = logging.getLogger(__name__)

_FILE_FIELD: Final = 'file'
_MULTIPART: Final = 'multipart/form-data'
_JSON: Final = 'application/json'

_View = Callable[..., JsonResponse]


def json_api(*, anonymous: bool = False) -> Callable[[_View], _View]:
    """Wrap a view with authentication and error-to-status mapping.

    Args:
        anonymous: Allow unauthenticated requests.

    Returns:
        View decorator.
    """
    def decorator(view: _View) -> _View:
        @wraps(view)
        def wrapper(
            request: HttpRequest,
            *args: Any,
            **kwargs: Any,
        ) -> JsonResponse:
            if not anonymous and not request.user.is_authenticated:
                return _error(401, 'Authentication required')
            try:
                return view(request, *args, **kwargs)
            except ObjectDoesNotExist as error:
                return _error(404, str(error) or 'Item not found')
            except PermissionDenied as error:
                return _error(403, str(error) or 'Access denied')
            except ValidationError as error:
                return _error(400, _validation_details(error))
            except StorageFailureError:
                logger.exception('Storage failure in %s', view.__name__)
                return _error(500, 'Storage operation failed')
        return wrapper
    return decorator


@require_http_methods(['GET', 'POST'])
@json_api()
def items_collection(request: HttpRequest) -> JsonResponse:
    """List items (GET) or create a file or folder (POST)."""
    if request.method == 'POST':
        return _create(request)
    return _list(request)


@require_http_methods(['GET', 'PUT', 'DELETE'])
@json_api()
def item_resource(request: HttpRequest, item_id: int) -> JsonResponse:
    """Fetch (GET), update (PUT) or delete (DELETE) one item."""
    if request.method == 'PUT':
        return _update(request, item_id)
    if request.method == 'DELETE':
        report = delete_item(item_id, request.user)
        return JsonResponse(serialize_deletion(report))
    detail = get_item_detail(item_id, request.user)
    return JsonResponse(serialize_detail(detail))


@require_http_methods(['GET'])
@json_api()
def item_archive(request: HttpRequest, item_id: int) -> JsonResponse:
    """Archive an item."""
    item = archive_item(item_id, request.user)
    return JsonResponse(serialize_item(item))


@require_http_methods(['GET'])
@json_api()
def item_restore(request: HttpRequest, item_id: int) -> JsonResponse:
    """Restore an archived item."""
    item = restore_item(item_id, request.user)
    return JsonResponse(serialize_item(item))


@require_http_methods(['POST'])
@json_api()
def item_access(request: HttpRequest, item_id: int) -> JsonResponse:
    """Grant or replace a user's permission on an item."""
    data, _ = _parse_body(request)
    cleaned = AccessForm(data).cleaned_or_raise()
    item = update_access(
        item_id,
        request.user,
        target_user_id=cleaned['user'],
        permission=cleaned['permission'],
    )
    return JsonResponse(serialize_item(item))


@require_http_methods(['POST', 'DELETE'])
@json_api()
def item_shared_link(request: HttpRequest, item_id: int) -> JsonResponse:
    """Create (POST) or remove (DELETE) an item's shared link."""
    if request.method == 'DELETE':
        item = remove_shared_link(item_id, request.user)
        return JsonResponse(serialize_item(item))

    data, _ = _parse_body(request)
    cleaned = SharedLinkForm(data).cleaned_or_raise()
    item = create_shared_link(
        item_id,
        request.user,
        expiration_date=cleaned['expirationDate'],
    )
    return JsonResponse(serialize_item(item))


@require_http_methods(['GET'])
@json_api()
def item_accessed(request: HttpRequest, item_id: int) -> JsonResponse:
    """Record that the caller opened an item."""
    item = touch_access_time(item_id, request.user)
    return JsonResponse(serialize_item(item))


@require_http_methods(['GET'])
@json_api(anonymous=True)
def shared_item(request: HttpRequest, token: str) -> JsonResponse:
    """Anonymous retrieval of an item through a valid shared link."""
    listed = get_item_by_link(token)
    return JsonResponse(serialize_listed(listed))


def _create(request: HttpRequest) -> JsonResponse:
    data, files = _parse_body(request)
    form = ItemCreateForm(data)
    attributes = form.model_values()
    item = create_item(
        request.user,
        attributes,
        content=_incoming_content(files),
        parent_folder_id=form.cleaned_data['parentFolderId'],
    )
    return JsonResponse(
        serialize_item(item, signed_url=signed_url_for(item)),
        status=201,
    )


def _list(request: HttpRequest) -> JsonResponse:
    cleaned = ItemListForm(request.GET).cleaned_or_raise()
    filters = ItemFilters(
        parent_folder_id=cleaned['parentFolderId'],
        search=cleaned['search'],
        start_date=cleaned['startDate'],
        end_date=cleaned['endDate'],
        item_type=cleaned['fileType'] or None,
        owner_id=cleaned['owner'],
    )
    page = list_items(
        request.user,
        filters=filters,
        page=cleaned['page'] or 1,
        page_size=cleaned['limit'],
        sort_by=SORT_FIELDS[cleaned['sortBy'] or 'name'],
        sort_order=cleaned['sortOrder'] or 'asc',
    )
    return JsonResponse(serialize_page(page))


def _update(request: HttpRequest, item_id: int) -> JsonResponse:
    data, files = _parse_body(request)
    patch = ItemUpdateForm(data).model_values()
    item = update_item(
        item_id,
        request.user,
        patch,
        content=_incoming_content(files),
    )
    return JsonResponse(serialize_item(item, signed_url=signed_url_for(item)))


def _parse_body(
    request: HttpRequest,
) -> tuple[QueryDict | dict[str, Any], MultiValueDict]:
    """Parse JSON, multipart or urlencoded bodies for any method.

    Django only parses form bodies for POST, so other methods are
    parsed here.

    Raises:
        ValidationError: If a JSON body is malformed.
    """
    if request.content_type == _JSON:
        try:
            data = json.loads(request.body or b'{}')
        except json.JSONDecodeError as error:
            raise ValidationError('Malformed JSON body') from error
        if not isinstance(data, dict):
            raise ValidationError('JSON body must be an object')
        return data, MultiValueDict()

    if request.method == 'POST':
        return request.POST, request.FILES

    if request.content_type == _MULTIPART:
        # Stream from the request so uploads spill to disk like POST does
        parser = MultiPartParser(
            request.META,
            request,
            request.upload_handlers,
            request.encoding,
        )
        return parser.parse()
    return QueryDict(request.body, encoding=request.encoding), MultiValueDict()


def _incoming_content(files: MultiValueDict) -> IncomingContent | None:
    upload = files.get(_FILE_FIELD)
    if upload is None:
        return None
    return IncomingContent(
        file_obj=upload,
        filename=upload.name,
        mime_type=upload.content_type,
    )


def _validation_details(error: ValidationError) -> Any:
    if hasattr(error, 'error_dict'):
        return error.message_dict
    return error.messages


def _error(status: int, detail: Any) -> JsonResponse:
    return JsonResponse({'message': detail}, status=status)
