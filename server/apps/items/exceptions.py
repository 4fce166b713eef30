"""Exceptions for items app.

Missing items surface as ``Item.DoesNotExist`` and malformed input as
Django's ``ValidationError``; the classes below cover the remaining
failure modes.
"""

from django.core.exceptions import PermissionDenied


class AccessDeniedError(PermissionDenied):
    """Raised when a user's effective permission is below what is required."""

    def __init__(
        self,
        item_id: int,
        user_id: int | None,
        required: str,
        actual: str,
    ) -> None:
        """Initialize AccessDeniedError.

        Args:
            item_id: Item the operation targets.
            user_id: Acting user (None for anonymous).
            required: Minimum permission the operation needs.
            actual: Effective permission the user holds.
        """
        self.item_id = item_id
        self.user_id = user_id
        self.required = required
        self.actual = actual

        super().__init__(
            f'Access denied: user {user_id} has {actual!r} on item '
            f'{item_id}, {required!r} is required',
        )


class StorageFailureError(Exception):
    """Raised when the blob store fails to upload, sign or delete content."""

    def __init__(self, operation: str, key: str) -> None:
        """Initialize StorageFailureError.

        Args:
            operation: Storage operation that failed (upload, delete, sign).
            key: Storage key the operation targeted.
        """
        self.operation = operation
        self.key = key

        super().__init__(f'Storage {operation} failed for {key!r}')
