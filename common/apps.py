"""Django AppConfig for the common app."""

from django.apps import AppConfig


class CommonConfig(AppConfig):
    """Shared clock, errors, base model and command base class."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "common"
