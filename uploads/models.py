"""Token and file models for the single-slot upload lifecycle."""

from django.db import models

from common.models import CreatedDeletedModel


class Token(CreatedDeletedModel):
    """Access token tied to a single upload slot.

    ``path`` is the public handle; the numeric pk never leaves the server.
    Two deadlines apply: ``token_expires_at`` bounds when an upload may run,
    ``content_expires_at`` (set on completion) bounds how long the bytes are
    kept.

    Status lifecycle:
        fresh → used → deleted
        fresh → expired → deleted
    """

    class Status(models.TextChoices):
        FRESH = "FRESH", "Fresh"
        USED = "USED", "Used"
        EXPIRED = "EXPIRED", "Expired"
        DELETED = "DELETED", "Deleted"

    path = models.CharField(max_length=64, unique=True)
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.FRESH,
    )
    max_size = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        help_text="Upload cap in VRAC_SIZE_UNIT_BYTES units; empty means no cap",
    )
    token_expires_at = models.DateTimeField()
    content_expires_at = models.DateTimeField(null=True, blank=True)
    content_expires_after_hours = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Retention after upload; empty means keep until purged",
    )

    class Meta:
        db_table = "token"
        verbose_name = "token"
        verbose_name_plural = "tokens"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["status", "token_expires_at"],
                name="token_status_8c1f0e_idx",
            ),
            models.Index(
                fields=["status", "content_expires_at"],
                name="token_status_4d7a2b_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(token_expires_at__gt=models.F("created_at")),
                name="token_expires_after_creation",
            ),
        ]

    def __str__(self):
        return f"{self.path} ({self.get_status_display()})"


class File(CreatedDeletedModel):
    """The single file uploaded against a token.

    ``path`` is the blob store address, unrelated to the token's public
    path. ``size`` is in bytes and grows as chunks are written. Once the
    bytes are purged the row stays behind with ``deleted_at`` set.

    Status lifecycle:
        started → completed
        started → (row deleted on abort)
    """

    class UploadStatus(models.TextChoices):
        STARTED = "STARTED", "Started"
        COMPLETED = "COMPLETED", "Completed"

    token = models.OneToOneField(
        Token,
        on_delete=models.CASCADE,
        related_name="file",
    )
    name = models.CharField(max_length=255, blank=True)
    path = models.CharField(max_length=512, unique=True)
    content_type = models.CharField(max_length=255, blank=True)
    size = models.PositiveBigIntegerField(default=0, help_text="File size in bytes")
    file_upload_status = models.CharField(
        max_length=10,
        choices=UploadStatus.choices,
        default=UploadStatus.STARTED,
    )

    class Meta:
        db_table = "file"
        verbose_name = "file"
        verbose_name_plural = "files"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["file_upload_status"],
                name="file_file_up_5e9b3c_idx",
            ),
        ]

    def __str__(self):
        return f"{self.name or self.path} ({self.get_file_upload_status_display()})"
