"""Tests for permission resolution."""

import pytest
from django.contrib.auth.models import AnonymousUser

from server.apps.items.exceptions import AccessDeniedError
from server.apps.items.logic.access_operations import (
    NO_PERMISSION,
    has_at_least,
    permission_rank,
    require_permission,
    resolve_permission,
)
from server.apps.items.models import AccessEntry, Permission


def test_permission_rank_is_total_order():
    """Test none < read < write < admin."""
    ranks = [
        permission_rank(permission)
        for permission in (NO_PERMISSION, 'read', 'write', 'admin')
    ]

    assert ranks == sorted(ranks)
    assert len(set(ranks)) == 4


@pytest.mark.django_db
class TestResolvePermission:
    """Tests for resolve_permission function."""

    def test_owner_is_admin(self, user, make_folder):
        """Test the owner always resolves to admin."""
        folder = make_folder('docs')

        assert resolve_permission(folder, user.pk) == 'admin'

    def test_access_entry(self, other_user, make_folder):
        """Test a non-owner gets exactly the entry's permission."""
        folder = make_folder('docs')
        AccessEntry.objects.create(
            item=folder,
            user=other_user,
            permission=Permission.WRITE,
        )

        assert resolve_permission(folder, other_user.pk) == 'write'

    def test_no_entry(self, third_user, make_folder):
        """Test users without an entry get none."""
        folder = make_folder('docs')

        assert resolve_permission(folder, third_user.pk) == NO_PERMISSION

    def test_anonymous(self, make_folder):
        """Test anonymous callers get none."""
        folder = make_folder('docs')

        assert resolve_permission(folder, None) == NO_PERMISSION

    def test_not_inherited_from_parent(self, other_user, make_folder):
        """Test admin on a folder grants nothing on its children."""
        folder = make_folder('docs')
        child = make_folder('inner', parent=folder)
        AccessEntry.objects.create(
            item=folder,
            user=other_user,
            permission=Permission.ADMIN,
        )

        assert resolve_permission(child, other_user.pk) == NO_PERMISSION


@pytest.mark.django_db
class TestRequirePermission:
    """Tests for require_permission function."""

    def test_sufficient(self, other_user, make_folder):
        """Test a higher permission satisfies a lower requirement."""
        folder = make_folder('docs')
        AccessEntry.objects.create(
            item=folder,
            user=other_user,
            permission=Permission.ADMIN,
        )

        assert require_permission(folder, other_user, 'read') == 'admin'
        assert has_at_least(folder, other_user.pk, 'write')

    def test_insufficient(self, other_user, make_folder):
        """Test read does not satisfy write."""
        folder = make_folder('docs')
        AccessEntry.objects.create(
            item=folder,
            user=other_user,
            permission=Permission.READ,
        )

        with pytest.raises(AccessDeniedError) as exc_info:
            require_permission(folder, other_user, 'write')

        assert exc_info.value.required == 'write'
        assert exc_info.value.actual == 'read'
        assert exc_info.value.item_id == folder.pk

    def test_anonymous_denied(self, make_folder):
        """Test anonymous users are denied even read."""
        folder = make_folder('docs')

        with pytest.raises(AccessDeniedError):
            require_permission(folder, AnonymousUser(), 'read')
