"""Django app configuration for items app."""

from django.apps import AppConfig


class ItemsConfig(AppConfig):
    """Configuration for items app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'server.apps.items'
    verbose_name = 'Items'
