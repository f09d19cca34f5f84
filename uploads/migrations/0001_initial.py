"""Create the token and file tables."""

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Token",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        default=django.utils.timezone.now, verbose_name="created at"
                    ),
                ),
                (
                    "deleted_at",
                    models.DateTimeField(
                        blank=True, null=True, verbose_name="deleted at"
                    ),
                ),
                ("path", models.CharField(max_length=64, unique=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("FRESH", "Fresh"),
                            ("USED", "Used"),
                            ("EXPIRED", "Expired"),
                            ("DELETED", "Deleted"),
                        ],
                        default="FRESH",
                        max_length=10,
                    ),
                ),
                (
                    "max_size",
                    models.PositiveBigIntegerField(
                        blank=True,
                        help_text="Upload cap in VRAC_SIZE_UNIT_BYTES units; empty means no cap",
                        null=True,
                    ),
                ),
                ("token_expires_at", models.DateTimeField()),
                ("content_expires_at", models.DateTimeField(blank=True, null=True)),
                (
                    "content_expires_after_hours",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Retention after upload; empty means keep until purged",
                        null=True,
                    ),
                ),
            ],
            options={
                "verbose_name": "token",
                "verbose_name_plural": "tokens",
                "db_table": "token",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "token_expires_at"],
                        name="token_status_8c1f0e_idx",
                    ),
                    models.Index(
                        fields=["status", "content_expires_at"],
                        name="token_status_4d7a2b_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            ("token_expires_at__gt", models.F("created_at"))
                        ),
                        name="token_expires_after_creation",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="File",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        default=django.utils.timezone.now, verbose_name="created at"
                    ),
                ),
                (
                    "deleted_at",
                    models.DateTimeField(
                        blank=True, null=True, verbose_name="deleted at"
                    ),
                ),
                ("name", models.CharField(blank=True, max_length=255)),
                ("path", models.CharField(max_length=512, unique=True)),
                ("content_type", models.CharField(blank=True, max_length=255)),
                (
                    "size",
                    models.PositiveBigIntegerField(
                        default=0, help_text="File size in bytes"
                    ),
                ),
                (
                    "file_upload_status",
                    models.CharField(
                        choices=[("STARTED", "Started"), ("COMPLETED", "Completed")],
                        default="STARTED",
                        max_length=10,
                    ),
                ),
                (
                    "token",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="file",
                        to="uploads.token",
                    ),
                ),
            ],
            options={
                "verbose_name": "file",
                "verbose_name_plural": "files",
                "db_table": "file",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["file_upload_status"],
                        name="file_file_up_5e9b3c_idx",
                    ),
                ],
            },
        ),
    ]
