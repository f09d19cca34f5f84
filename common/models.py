"""Shared abstract base models used across all apps."""

from django.db import models
from django.utils import timezone


class CreatedDeletedModel(models.Model):
    """Abstract base providing created_at/deleted_at timestamps.

    ``created_at`` is a plain default rather than ``auto_now_add`` so that
    services can stamp rows with the injected clock.
    """

    created_at = models.DateTimeField(default=timezone.now, verbose_name="created at")
    deleted_at = models.DateTimeField(null=True, blank=True, verbose_name="deleted at")

    class Meta:
        abstract = True

    @property
    def is_deleted(self):
        return self.deleted_at is not None
