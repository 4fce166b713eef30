"""Shared fixtures for items app tests."""

from io import BytesIO

import boto3
import pytest
from django.contrib.auth import get_user_model
from django.core.files.base import ContentFile
from moto import mock_aws
from PIL import Image

from server.apps.items.logic.content_pipeline import IncomingContent
from server.apps.items.models import Item, ItemType

User = get_user_model()

BUCKET_NAME = 'item-vault'

# EXIF tag IDs
_TAG_MAKE = 0x010F
_TAG_DATETIME = 0x0132
_TAG_DATETIME_ORIGINAL = 0x9003


@pytest.fixture
def user(db):
    """Create test user.

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='testuser',
        password='testpass123',
        email='test@example.com',
    )


@pytest.fixture
def other_user(db):
    """Create second test user for sharing tests.

    Returns:
        Second user instance.
    """
    return User.objects.create_user(
        username='otheruser',
        password='testpass123',
        email='other@example.com',
    )


@pytest.fixture
def third_user(db):
    """Create a user that nothing is shared with.

    Returns:
        Third user instance.
    """
    return User.objects.create_user(
        username='thirduser',
        password='testpass123',
        email='third@example.com',
    )


@pytest.fixture
def mock_s3():
    """Mock S3 service with item-vault bucket.

    Yields:
        boto3 S3 resource with item-vault bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(Bucket=BUCKET_NAME)
        yield conn


@pytest.fixture
def bucket(mock_s3):
    """The mocked item-vault bucket.

    Returns:
        boto3 Bucket resource.
    """
    return mock_s3.Bucket(BUCKET_NAME)


@pytest.fixture
def stored_keys(bucket):
    """Lister of the keys currently in the bucket.

    Returns:
        Callable returning a set of storage keys.
    """
    def list_keys():
        return {obj.key for obj in bucket.objects.all()}
    return list_keys


@pytest.fixture
def sample_content():
    """Plain text upload.

    Returns:
        IncomingContent with test data.
    """
    return IncomingContent(
        file_obj=ContentFile(b'test file content', name='notes.txt'),
        filename='notes.txt',
        mime_type='text/plain',
    )


@pytest.fixture
def png_bytes():
    """A 400x200 PNG image without EXIF.

    Returns:
        Encoded PNG bytes.
    """
    output = BytesIO()
    Image.new('RGB', (400, 200), color='red').save(output, format='PNG')
    return output.getvalue()


@pytest.fixture
def jpeg_with_exif_bytes():
    """A JPEG carrying camera make and capture times in EXIF.

    Returns:
        Encoded JPEG bytes.
    """
    exif = Image.Exif()
    exif[_TAG_MAKE] = 'TestCam'
    exif[_TAG_DATETIME] = '2021:06:01 08:30:00'
    exif[_TAG_DATETIME_ORIGINAL] = '2020:01:02 03:04:05'

    output = BytesIO()
    Image.new('RGB', (64, 48), color='blue').save(
        output,
        format='JPEG',
        exif=exif,
    )
    return output.getvalue()


@pytest.fixture
def image_content(png_bytes):
    """Image upload.

    Returns:
        IncomingContent with PNG data.
    """
    return IncomingContent(
        file_obj=ContentFile(png_bytes, name='photo.png'),
        filename='photo.png',
        mime_type='image/png',
    )


@pytest.fixture
def make_folder(user):
    """Factory creating folder records directly in the database.

    Returns:
        Callable taking a name, an optional parent and an optional owner.
    """
    def factory(name, parent=None, owner=None):
        return Item.objects.create(
            name=name,
            original_name=name,
            item_type=ItemType.FOLDER,
            parent_folder=parent,
            owner=owner or user,
        )
    return factory


@pytest.fixture
def make_file(user):
    """Factory creating file records without touching storage.

    Returns:
        Callable taking a name, an optional parent and an optional owner.
    """
    def factory(name, parent=None, owner=None, **extra):
        fields = {
            'content': f'content-{name}',
            'mime_type': 'text/plain',
            'extension': 'txt',
            'size_bytes': 100,
            'checksum_sha256': 'a' * 64,
        }
        fields.update(extra)
        return Item.objects.create(
            name=name,
            original_name=name,
            item_type=ItemType.FILE,
            parent_folder=parent,
            owner=owner or user,
            **fields,
        )
    return factory
