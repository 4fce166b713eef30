"""Metadata extraction utilities for item content."""

import hashlib
import math
import mimetypes
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Final

from PIL import ExifTags, Image

_CHUNK_SIZE: Final = 8192  # 8KB chunks for checksum calculation
_DEFAULT_MIME_TYPE: Final = 'application/octet-stream'

# EXIF layout: capture details live in a sub-IFD of the base directory
_EXIF_IFD_POINTER: Final = 0x8769
_EXIF_DATETIME_FORMAT: Final = '%Y:%m:%d %H:%M:%S'
_TAG_DATETIME_ORIGINAL: Final = 'DateTimeOriginal'
_TAG_DATETIME: Final = 'DateTime'

_MEDIA_PREFIXES: Final = ('image/', 'video/', 'audio/')

_MIME_CATEGORIES: Final[Mapping[str, str]] = {
    'application/pdf': 'pdf',
    'application/msword': 'document',
    'application/rtf': 'document',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document': 'document',  # noqa: E501
    'application/vnd.oasis.opendocument.text': 'document',
    'application/vnd.ms-excel': 'spreadsheet',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet': 'spreadsheet',  # noqa: E501
    'application/vnd.oasis.opendocument.spreadsheet': 'spreadsheet',
    'text/csv': 'spreadsheet',
    'application/vnd.ms-powerpoint': 'presentation',
    'application/vnd.openxmlformats-officedocument.presentationml.presentation': 'presentation',  # noqa: E501
    'application/vnd.oasis.opendocument.presentation': 'presentation',
}

# Used when the MIME type alone is ambiguous (octet-stream, zip, text/plain)
_EXTENSION_CATEGORIES: Final[Mapping[str, str]] = {
    'pdf': 'pdf',
    'doc': 'document',
    'docx': 'document',
    'odt': 'document',
    'rtf': 'document',
    'txt': 'document',
    'md': 'document',
    'xls': 'spreadsheet',
    'xlsx': 'spreadsheet',
    'ods': 'spreadsheet',
    'csv': 'spreadsheet',
    'ppt': 'presentation',
    'pptx': 'presentation',
    'odp': 'presentation',
    'js': 'code',
    'ts': 'code',
    'py': 'code',
    'java': 'code',
    'c': 'code',
    'cpp': 'code',
    'h': 'code',
    'go': 'code',
    'rs': 'code',
    'rb': 'code',
    'php': 'code',
    'html': 'code',
    'css': 'code',
    'sh': 'code',
    'sql': 'code',
}


@dataclass(frozen=True, slots=True)
class EmbeddedMetadata:
    """Metadata read from the content bytes."""

    values: dict[str, object] = field(default_factory=dict)
    created_on: datetime | None = None
    modified_on: datetime | None = None


def detect_mime_type(file_obj: BinaryIO, filename: str) -> str:
    """Detect MIME type from file.

    Uses Python's built-in mimetypes module to guess MIME type
    from filename extension.

    Args:
        file_obj: File-like object (not used in basic implementation).
        filename: Filename with extension.

    Returns:
        MIME type string (e.g., 'image/jpeg', 'application/pdf').
        Returns 'application/octet-stream' if type cannot be determined.
    """
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type is None:
        return _DEFAULT_MIME_TYPE
    return mime_type


def resolve_mime_type(
    file_obj: BinaryIO,
    filename: str,
    declared: str | None,
) -> str:
    """Prefer the declared MIME type, guess when it carries no information.

    Args:
        file_obj: File-like object.
        filename: Original filename.
        declared: MIME type sent by the client, if any.

    Returns:
        MIME type string.
    """
    if declared and declared != _DEFAULT_MIME_TYPE:
        return declared
    return detect_mime_type(file_obj, filename)


def calculate_checksum(file_obj: BinaryIO) -> str:
    """Calculate SHA256 checksum of file.

    Reads file in chunks to handle large files efficiently.
    Resets file pointer to beginning after calculation.

    Args:
        file_obj: File-like object to checksum.

    Returns:
        Hex-encoded SHA256 hash string.
    """
    sha256_hash = hashlib.sha256()

    # Reset file pointer to beginning
    file_obj.seek(0)

    # Read in chunks to handle large files
    for chunk in iter(lambda: file_obj.read(_CHUNK_SIZE), b''):
        sha256_hash.update(chunk)

    # Reset file pointer to beginning for subsequent operations
    file_obj.seek(0)

    return sha256_hash.hexdigest()


def get_file_extension(filename: str) -> str:
    """Get file extension from filename.

    Args:
        filename: Filename (e.g., 'document.pdf').

    Returns:
        Extension without dot, lowercase (e.g., 'pdf').
        Returns empty string if no extension.
    """
    extension = Path(filename).suffix
    return extension.lstrip('.').lower()


def generate_content_key(filename: str) -> str:
    """Generate a unique storage key keeping the original extension.

    Args:
        filename: Original filename.

    Returns:
        Key like '3f2b...9c.pdf' (no extension if the name has none).
    """
    extension = get_file_extension(filename)
    key = uuid.uuid4().hex
    if extension:
        return f'{key}.{extension}'
    return key


def generate_thumbnail_key() -> str:
    """Generate a unique storage key for a JPEG thumbnail."""
    return f'thumbnail-{uuid.uuid4().hex}.jpg'


def is_image(mime_type: str) -> bool:
    """Check whether the MIME type denotes an image."""
    return mime_type.startswith('image/')


def derive_internal_tags(mime_type: str, extension: str) -> list[str]:
    """Derive system tags from MIME type and extension.

    The literal MIME type is always included. Media types also get a
    'media' tag, and at most one coarse category is appended: image,
    video, audio, pdf, document, spreadsheet, presentation or code.

    Args:
        mime_type: Content MIME type.
        extension: File extension without dot, lowercase.

    Returns:
        Ordered list of unique tags.
    """
    tags = [mime_type]

    if mime_type.startswith(_MEDIA_PREFIXES):
        tags.append('media')
        category = mime_type.split('/', 1)[0]
    elif mime_type in _MIME_CATEGORIES:
        category = _MIME_CATEGORIES[mime_type]
    else:
        category = _EXTENSION_CATEGORIES.get(extension)

    if category and category not in tags:
        tags.append(category)
    return tags


def extract_embedded_metadata(content: bytes | BinaryIO) -> EmbeddedMetadata:
    """Extract EXIF metadata from content in any format Pillow reads.

    Reads the base IFD (camera make/model, modification time) and the
    Exif sub-IFD (capture time, exposure details). Values are converted
    to JSON-compatible types.

    Args:
        content: Raw bytes or a seekable file positioned at the start.

    Returns:
        Extracted values and derived timestamps (None when absent).

    Raises:
        PIL.UnidentifiedImageError: If no decoder recognizes the content.
        Exception: Anything else Pillow raises for damaged content.
    """
    source = BytesIO(content) if isinstance(content, bytes) else content
    with Image.open(source) as image:
        exif = image.getexif()
        values: dict[str, object] = {}
        _collect_tags(values, exif)
        _collect_tags(values, exif.get_ifd(_EXIF_IFD_POINTER))

    return EmbeddedMetadata(
        values=values,
        created_on=_parse_exif_datetime(values.get(_TAG_DATETIME_ORIGINAL)),
        modified_on=_parse_exif_datetime(values.get(_TAG_DATETIME)),
    )


def _collect_tags(values: dict[str, object], tags: Mapping[int, object]) -> None:
    for tag_id, raw_value in tags.items():
        if tag_id == _EXIF_IFD_POINTER:
            continue
        tag_name = ExifTags.TAGS.get(tag_id, str(tag_id))
        values[tag_name] = _to_json_value(raw_value)


def _to_json_value(raw_value: object) -> object:  # noqa: WPS212
    if isinstance(raw_value, bytes):
        return raw_value.decode('utf-8', errors='replace').strip('\x00')
    if isinstance(raw_value, str):
        return raw_value.strip('\x00')
    if isinstance(raw_value, (bool, int)):
        return raw_value
    if isinstance(raw_value, (tuple, list)):
        return [_to_json_value(element) for element in raw_value]
    if isinstance(raw_value, Mapping):
        return {
            str(sub_key): _to_json_value(sub_value)
            for sub_key, sub_value in raw_value.items()
        }
    try:
        # IFDRational and other numeric wrappers
        number = float(raw_value)  # type: ignore[arg-type]
    except (TypeError, ValueError, ZeroDivisionError):
        return str(raw_value)
    return number if math.isfinite(number) else None


def _parse_exif_datetime(raw_value: object) -> datetime | None:
    if not isinstance(raw_value, str):
        return None
    try:
        parsed = datetime.strptime(raw_value.strip(), _EXIF_DATETIME_FORMAT)
    except ValueError:
        return None
    # EXIF carries no zone information
    return parsed.replace(tzinfo=UTC)
