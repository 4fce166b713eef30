"""Settings for the local development environment."""

from server.settings.components.common import ALLOWED_HOSTS

DEBUG = True

ALLOWED_HOSTS = [
    *ALLOWED_HOSTS,
    '0.0.0.0',  # noqa: S104
    '[::1]',
]
