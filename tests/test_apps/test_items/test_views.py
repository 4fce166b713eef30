"""Tests for the items HTTP API."""

import json
from datetime import timedelta
from unittest import mock

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test.client import BOUNDARY, MULTIPART_CONTENT, encode_multipart
from django.urls import reverse
from django.utils import timezone

from server.apps.items.exceptions import StorageFailureError
from server.apps.items.models import AccessEntry, Item, Permission


def _put_json(client, url, payload):
    return client.put(
        url,
        data=json.dumps(payload),
        content_type='application/json',
    )


def _post_json(client, url, payload):
    return client.post(
        url,
        data=json.dumps(payload),
        content_type='application/json',
    )


@pytest.fixture
def user_client(client, user):
    """Test client logged in as the default user.

    Returns:
        Authenticated Django test client.
    """
    client.force_login(user)
    return client


@pytest.mark.django_db
class TestItemsCollection:
    """Tests for /items/."""

    def test_requires_authentication(self, client):
        """Test anonymous requests get 401."""
        response = client.get(reverse('items:collection'))

        assert response.status_code == 401

    def test_create_folder_json(self, user_client, user):
        """Test creating a folder from a JSON body."""
        response = _post_json(user_client, reverse('items:collection'), {
            'name': 'Photos',
            'customProperties': {'color': 'blue'},
            'userTags': ['family', 'family', '2024'],
        })

        assert response.status_code == 201
        body = response.json()
        assert body['type'] == 'folder'
        assert body['name'] == 'Photos'
        assert body['version'] == 1
        assert body['owner'] == user.pk
        assert body['customProperties'] == {'color': 'blue'}
        assert body['userTags'] == ['family', '2024']
        assert body['contentRef'] is None
        assert 'signedUrl' not in body

    def test_create_file_multipart(self, user_client, mock_s3):
        """Test uploading a file with form fields."""
        upload = SimpleUploadedFile(
            'report.pdf',
            b'%PDF-1.4 test',
            content_type='application/pdf',
        )

        response = user_client.post(reverse('items:collection'), {
            'file': upload,
            'description': 'Quarterly report',
            'isHidden': 'true',
            'userTags': '["work"]',
        })

        assert response.status_code == 201
        body = response.json()
        assert body['type'] == 'file'
        assert body['name'] == 'report.pdf'
        assert body['mimeType'] == 'application/pdf'
        assert body['extension'] == 'pdf'
        assert body['size'] == len(b'%PDF-1.4 test')
        assert body['isHidden'] is True
        assert body['userTags'] == ['work']
        assert body['internalTags'] == ['application/pdf', 'pdf']
        assert body['signedUrl'].startswith('https://')

    def test_create_in_foreign_folder(self, client, other_user, make_folder):
        """Test creating inside a folder without write gives 403."""
        folder = make_folder('docs')
        client.force_login(other_user)

        response = _post_json(client, reverse('items:collection'), {
            'name': 'x',
            'parentFolderId': folder.pk,
        })

        assert response.status_code == 403

    def test_create_invalid_name(self, user_client):
        """Test validation failures give 400."""
        response = _post_json(user_client, reverse('items:collection'), {
            'name': 'a/b',
        })

        assert response.status_code == 400
        assert response.json()['message']

    def test_upload_failure(self, user_client):
        """Test storage failures give 500 and create nothing."""
        upload = SimpleUploadedFile('a.txt', b'abc', content_type='text/plain')

        with mock.patch(
            'server.apps.items.logic.content_pipeline.upload_blob',
            side_effect=StorageFailureError('upload', 'a.txt'),
        ):
            response = user_client.post(
                reverse('items:collection'),
                {'file': upload},
            )

        assert response.status_code == 500
        assert Item.objects.count() == 0

    def test_list(self, user_client, make_folder, make_file, mock_s3):
        """Test listing with sorting and pagination metadata."""
        make_folder('folder')
        make_file('small.txt', size_bytes=1)
        make_file('large.txt', size_bytes=1000)

        response = user_client.get(reverse('items:collection'), {
            'sortBy': 'size',
            'sortOrder': 'desc',
            'limit': 2,
        })

        assert response.status_code == 200
        body = response.json()
        assert [entry['name'] for entry in body['items']] == [
            'large.txt',
            'small.txt',
        ]
        assert body['totalItems'] == 3
        assert body['totalPages'] == 2
        assert body['pageSize'] == 2
        assert all('signedUrl' in entry for entry in body['items'])

    def test_list_children(self, user_client, make_folder):
        """Test listing the contents of a folder."""
        folder = make_folder('docs')
        make_folder('inner', parent=folder)
        make_folder('other')

        response = user_client.get(
            reverse('items:collection'),
            {'parentFolderId': folder.pk},
        )

        assert [entry['name'] for entry in response.json()['items']] == [
            'inner',
        ]

    def test_list_date_only_end_covers_day(self, user_client, make_folder):
        """Test a date-only endDate includes items from that whole day."""
        folder = make_folder('late')
        created = timezone.now().replace(hour=23, minute=30)
        Item.objects.filter(pk=folder.pk).update(created_on=created)

        response = user_client.get(reverse('items:collection'), {
            'endDate': created.date().isoformat(),
        })

        assert [entry['name'] for entry in response.json()['items']] == [
            'late',
        ]

    @pytest.mark.parametrize('query', [
        {'sortBy': 'owner'},
        {'page': 0},
        {'limit': 500},
        {'fileType': 'symlink'},
    ])
    def test_list_invalid_query(self, user_client, query):
        """Test malformed listing queries give 400."""
        response = user_client.get(reverse('items:collection'), query)

        assert response.status_code == 400

    def test_wrong_method(self, user_client):
        """Test unsupported methods give 405."""
        response = user_client.patch(reverse('items:collection'))

        assert response.status_code == 405


@pytest.mark.django_db
class TestItemResource:
    """Tests for /items/<id>/."""

    def test_get_detail(self, user_client, make_folder):
        """Test single fetch adds caller-specific fields."""
        root = make_folder('root')
        child = make_folder('child', parent=root)

        response = user_client.get(reverse('items:detail', args=[child.pk]))

        assert response.status_code == 200
        body = response.json()
        assert body['isOwner'] is True
        assert body['userPermission'] == 'admin'
        assert body['fullPath'] == 'root/child'
        assert body['parentFolderId'] == root.pk

    def test_get_missing(self, user_client):
        """Test unknown IDs give 404."""
        response = user_client.get(reverse('items:detail', args=[99999]))

        assert response.status_code == 404

    def test_get_without_access(self, client, third_user, make_folder):
        """Test users without access get 403."""
        folder = make_folder('docs')
        client.force_login(third_user)

        response = client.get(reverse('items:detail', args=[folder.pk]))

        assert response.status_code == 403

    def test_update_json(self, user_client, make_folder):
        """Test a JSON update only touches the fields sent."""
        folder = make_folder('docs')
        folder.description = 'keep me'
        folder.save()

        response = _put_json(
            user_client,
            reverse('items:detail', args=[folder.pk]),
            {'name': 'Documents', 'version': 42},
        )

        assert response.status_code == 200
        body = response.json()
        assert body['name'] == 'Documents'
        assert body['description'] == 'keep me'
        assert body['version'] == 2

    def test_update_multipart_content(self, user_client, make_file, mock_s3):
        """Test replacing content through a multipart PUT."""
        file_item = make_file('a.txt')
        payload = encode_multipart(BOUNDARY, {
            'file': SimpleUploadedFile(
                'b.csv',
                b'a,b\n1,2\n',
                content_type='text/csv',
            ),
            'description': 'numbers',
        })

        response = user_client.put(
            reverse('items:detail', args=[file_item.pk]),
            data=payload,
            content_type=MULTIPART_CONTENT,
        )

        assert response.status_code == 200
        body = response.json()
        assert body['originalName'] == 'b.csv'
        assert body['mimeType'] == 'text/csv'
        assert body['description'] == 'numbers'
        assert body['internalTags'] == ['text/csv', 'spreadsheet']
        assert body['version'] == 2

    def test_update_large_multipart_content(
        self,
        user_client,
        make_file,
        mock_s3,
        settings,
    ):
        """Test PUT replacements are not capped by the in-memory limit."""
        file_item = make_file('a.bin')
        size = settings.DATA_UPLOAD_MAX_MEMORY_SIZE + 512 * 1024
        payload = encode_multipart(BOUNDARY, {
            'file': SimpleUploadedFile(
                'photo.bin',
                b'\x00' * size,
                content_type='application/octet-stream',
            ),
        })

        response = user_client.put(
            reverse('items:detail', args=[file_item.pk]),
            data=payload,
            content_type=MULTIPART_CONTENT,
        )

        assert response.status_code == 200
        body = response.json()
        assert body['originalName'] == 'photo.bin'
        assert body['size'] == size

    def test_update_cycle(self, user_client, make_folder):
        """Test cyclic moves give 400."""
        root = make_folder('root')
        child = make_folder('child', parent=root)

        response = _put_json(
            user_client,
            reverse('items:detail', args=[root.pk]),
            {'parentFolderId': child.pk},
        )

        assert response.status_code == 400

    def test_update_malformed_json(self, user_client, make_folder):
        """Test unparsable bodies give 400."""
        folder = make_folder('docs')

        response = user_client.put(
            reverse('items:detail', args=[folder.pk]),
            data='{not json',
            content_type='application/json',
        )

        assert response.status_code == 400

    def test_delete(self, user_client, make_folder):
        """Test a clean delete response."""
        folder = make_folder('docs')

        response = user_client.delete(reverse('items:detail', args=[folder.pk]))

        assert response.status_code == 200
        assert response.json() == {
            'message': 'Item deleted successfully',
            'id': folder.pk,
            'orphanedContent': [],
        }
        assert not Item.objects.filter(pk=folder.pk).exists()

    def test_delete_reports_orphans(self, user_client, make_file):
        """Test failed blob deletions are reported, not hidden."""
        file_item = make_file('a.txt')

        with mock.patch(
            'server.apps.items.logic.item_operations.delete_blob',
            side_effect=StorageFailureError('delete', 'content-a.txt'),
        ):
            response = user_client.delete(
                reverse('items:detail', args=[file_item.pk]),
            )

        assert response.status_code == 200
        assert response.json()['orphanedContent'] == ['content-a.txt']

    def test_delete_needs_admin(self, client, other_user, make_folder):
        """Test write holders cannot delete."""
        folder = make_folder('docs')
        AccessEntry.objects.create(
            item=folder,
            user=other_user,
            permission=Permission.WRITE,
        )
        client.force_login(other_user)

        response = client.delete(reverse('items:detail', args=[folder.pk]))

        assert response.status_code == 403


@pytest.mark.django_db
def test_archive_and_restore(user_client, make_folder):
    """Test archive and restore endpoints."""
    folder = make_folder('docs')

    archived = user_client.get(reverse('items:archive', args=[folder.pk]))
    restored = user_client.get(reverse('items:restore', args=[folder.pk]))

    assert archived.json()['isArchived'] is True
    assert restored.json()['isArchived'] is False
    assert restored.json()['version'] == 3


@pytest.mark.django_db
class TestAccessEndpoint:
    """Tests for /items/access/<id>/."""

    def test_grant(self, user_client, other_user, make_folder):
        """Test granting access lists the entry."""
        folder = make_folder('docs')

        response = _post_json(
            user_client,
            reverse('items:access', args=[folder.pk]),
            {'user': other_user.pk, 'permission': 'write'},
        )

        assert response.status_code == 200
        assert response.json()['access'] == [
            {'user': other_user.pk, 'permission': 'write'},
        ]

    def test_invalid_permission(self, user_client, other_user, make_folder):
        """Test unknown permission values give 400."""
        folder = make_folder('docs')

        response = _post_json(
            user_client,
            reverse('items:access', args=[folder.pk]),
            {'user': other_user.pk, 'permission': 'owner'},
        )

        assert response.status_code == 400
        assert 'permission' in response.json()['message']


@pytest.mark.django_db
class TestSharedLinks:
    """Tests for shared link endpoints."""

    def test_share_and_retrieve_anonymously(
        self,
        client,
        user,
        make_file,
        mock_s3,
    ):
        """Test a created link resolves without authentication."""
        file_item = make_file('a.txt')
        client.force_login(user)
        shared = client.post(reverse('items:shared-link', args=[file_item.pk]))
        token = shared.json()['sharedLink']
        client.logout()

        response = client.get(reverse('items:shared', args=[token]))

        assert response.status_code == 200
        assert response.json()['id'] == file_item.pk
        assert 'signedUrl' in response.json()

    def test_share_with_expiry(self, user_client, make_folder):
        """Test an expiry date is accepted and echoed."""
        folder = make_folder('docs')
        expires = timezone.now() + timedelta(days=2)

        response = _post_json(
            user_client,
            reverse('items:shared-link', args=[folder.pk]),
            {'expirationDate': expires.isoformat()},
        )

        assert response.status_code == 200
        assert response.json()['expirationDate'] is not None

    def test_share_with_past_expiry(self, user_client, make_folder):
        """Test a past expiry gives 400."""
        folder = make_folder('docs')
        expires = timezone.now() - timedelta(days=2)

        response = _post_json(
            user_client,
            reverse('items:shared-link', args=[folder.pk]),
            {'expirationDate': expires.isoformat()},
        )

        assert response.status_code == 400

    def test_update_with_taken_link(self, user_client, make_folder):
        """Test reusing another item's token through PUT gives 400."""
        first = make_folder('first')
        Item.objects.filter(pk=first.pk).update(shared_link='mytoken')
        second = make_folder('second')

        response = _put_json(
            user_client,
            reverse('items:detail', args=[second.pk]),
            {'sharedLink': 'mytoken'},
        )

        assert response.status_code == 400
        assert response.json()['message']

    def test_expired_link_reads_as_absent(self, user_client, make_folder):
        """Test an expired link is serialized as null."""
        folder = make_folder('docs')
        Item.objects.filter(pk=folder.pk).update(
            shared_link='stale',
            expiration_date=timezone.now() - timedelta(hours=1),
        )

        response = user_client.get(reverse('items:detail', args=[folder.pk]))

        assert response.json()['sharedLink'] is None
        assert response.json()['expirationDate'] is None

    def test_expired_link_not_found(self, client, make_folder):
        """Test anonymous retrieval of an expired link gives 404."""
        folder = make_folder('docs')
        Item.objects.filter(pk=folder.pk).update(
            shared_link='stale',
            expiration_date=timezone.now() - timedelta(hours=1),
        )

        response = client.get(reverse('items:shared', args=['stale']))

        assert response.status_code == 404

    def test_remove(self, user_client, make_folder):
        """Test removing a link."""
        folder = make_folder('docs')
        user_client.post(reverse('items:shared-link', args=[folder.pk]))

        response = user_client.delete(
            reverse('items:shared-link', args=[folder.pk]),
        )

        assert response.status_code == 200
        assert response.json()['sharedLink'] is None
        assert response.json()['version'] == 3


@pytest.mark.django_db
def test_accessed(user_client, make_folder):
    """Test touching access time keeps the version."""
    folder = make_folder('docs')

    response = user_client.get(reverse('items:accessed', args=[folder.pk]))

    assert response.status_code == 200
    assert response.json()['lastAccessedOn'] is not None
    assert response.json()['version'] == 1


@pytest.mark.django_db
def test_admin_changelist(admin_client, make_folder):
    """Test the admin lists items."""
    make_folder('docs')

    response = admin_client.get('/admin/items/item/')

    assert response.status_code == 200
    assert b'docs' in response.content
