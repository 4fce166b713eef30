"""Request validation for the items HTTP API.

Forms accept both JSON bodies and multipart form data: JSON values are
passed through, form strings are coerced. Only fields actually present
in the request are forwarded to the business logic, so a partial update
never resets omitted fields.
"""

from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Any, ClassVar, Final

from django import forms
from django.core.exceptions import ValidationError

from server.apps.items.models import ItemType, Permission

_NAME_MAX_LENGTH: Final = 255
_DATE_ONLY_LENGTH: Final = len('YYYY-MM-DD')

# API sort keys mapped to model fields
SORT_FIELDS: Final[Mapping[str, str]] = {
    'name': 'name',
    'createdOn': 'created_on',
    'lastModifiedOn': 'last_modified_on',
    'size': 'size_bytes',
    'type': 'item_type',
    'version': 'version',
    'fileCreatedOn': 'file_created_on',
    'lastAccessedOn': 'last_accessed_on',
}


class ApiForm(forms.Form):
    """Form that translates camelCase API fields to model fields."""

    field_map: ClassVar[Mapping[str, str]] = {}

    def cleaned_or_raise(self) -> dict[str, Any]:
        """Validate and return cleaned data.

        Raises:
            ValidationError: With per-field messages if invalid.
        """
        if not self.is_valid():
            raise ValidationError(self.errors.as_data())
        return self.cleaned_data

    def model_values(self) -> dict[str, Any]:
        """Cleaned values for mapped fields present in the request."""
        cleaned = self.cleaned_or_raise()
        return {
            model_field: cleaned[api_field]
            for api_field, model_field in self.field_map.items()
            if api_field in self.data
        }


class ItemCreateForm(ApiForm):
    """Attributes accepted when creating a file or folder."""

    field_map = {
        'name': 'name',
        'description': 'description',
        'isHidden': 'is_hidden',
        'isEncrypted': 'is_encrypted',
        'compressionType': 'compression_type',
        'customProperties': 'custom_properties',
        'userTags': 'user_tags',
        'originalLocation': 'original_location',
        'originatingDeviceId': 'originating_device_id',
    }

    name = forms.CharField(required=False, max_length=_NAME_MAX_LENGTH)
    description = forms.CharField(required=False, strip=False)
    parentFolderId = forms.IntegerField(required=False)  # noqa: N815
    isHidden = forms.BooleanField(required=False)  # noqa: N815
    isEncrypted = forms.BooleanField(required=False)  # noqa: N815
    compressionType = forms.CharField(required=False)  # noqa: N815
    customProperties = forms.JSONField(required=False)  # noqa: N815
    userTags = forms.JSONField(required=False)  # noqa: N815
    originalLocation = forms.CharField(required=False)  # noqa: N815
    originatingDeviceId = forms.CharField(required=False)  # noqa: N815

    def clean_customProperties(self) -> Any:  # noqa: N802
        """Treat an explicit null as an empty map."""
        return self.cleaned_data['customProperties'] or {}

    def clean_userTags(self) -> Any:  # noqa: N802
        """Treat an explicit null as no tags."""
        return self.cleaned_data['userTags'] or []


class ItemUpdateForm(ItemCreateForm):
    """Allow-listed attributes accepted on update."""

    field_map = {
        'name': 'name',
        'description': 'description',
        'isArchived': 'is_archived',
        'isHidden': 'is_hidden',
        'customProperties': 'custom_properties',
        'userTags': 'user_tags',
        'parentFolderId': 'parent_folder_id',
        'isEncrypted': 'is_encrypted',
        'compressionType': 'compression_type',
        'sharedLink': 'shared_link',
    }

    isArchived = forms.BooleanField(required=False)  # noqa: N815
    sharedLink = forms.CharField(required=False, empty_value=None)  # noqa: N815


class AccessForm(ApiForm):
    """Access entry to grant or replace."""

    user = forms.IntegerField()
    permission = forms.ChoiceField(choices=Permission.choices)


class SharedLinkForm(ApiForm):
    """Optional expiry for a new shared link."""

    expirationDate = forms.DateTimeField(required=False)  # noqa: N815


class ItemListForm(ApiForm):
    """Query string of the listing endpoint."""

    parentFolderId = forms.IntegerField(required=False)  # noqa: N815
    page = forms.IntegerField(required=False, min_value=1)
    limit = forms.IntegerField(required=False, min_value=1)
    search = forms.CharField(required=False)
    sortBy = forms.ChoiceField(  # noqa: N815
        required=False,
        choices=[(api_name, api_name) for api_name in SORT_FIELDS],
    )
    sortOrder = forms.ChoiceField(  # noqa: N815
        required=False,
        choices=[('asc', 'asc'), ('desc', 'desc')],
    )
    startDate = forms.DateTimeField(required=False)  # noqa: N815
    endDate = forms.DateTimeField(required=False)  # noqa: N815
    fileType = forms.ChoiceField(  # noqa: N815
        required=False,
        choices=ItemType.choices,
    )
    owner = forms.IntegerField(required=False)

    def clean_endDate(self) -> datetime | None:  # noqa: N802
        """Make a date-only end bound cover the whole day."""
        end_date = self.cleaned_data['endDate']
        raw_value = str(self.data.get('endDate', '')).strip()
        if end_date is not None and len(raw_value) == _DATE_ONLY_LENGTH:
            return end_date + timedelta(days=1) - timedelta(microseconds=1)
        return end_date
