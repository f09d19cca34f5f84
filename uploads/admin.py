"""Admin configuration for token and file models."""

from django.contrib import admin, messages

from common.exceptions import StorageFailure
from uploads.models import File, Token
from uploads.services.sweeper import purge_token


class FileInline(admin.StackedInline):
    model = File
    extra = 0
    can_delete = False
    readonly_fields = (
        "name",
        "path",
        "content_type",
        "size",
        "file_upload_status",
        "created_at",
        "deleted_at",
    )


@admin.register(Token)
class TokenAdmin(admin.ModelAdmin):
    """Admin interface for tokens. State changes go through the services."""

    list_display = (
        "path",
        "status",
        "max_size",
        "created_at",
        "token_expires_at",
        "content_expires_at",
        "deleted_at",
    )
    list_filter = ("status", "created_at")
    search_fields = ("path",)
    readonly_fields = (
        "pk",
        "path",
        "status",
        "max_size",
        "created_at",
        "token_expires_at",
        "content_expires_at",
        "content_expires_after_hours",
        "deleted_at",
    )
    date_hierarchy = "created_at"
    inlines = [FileInline]
    actions = ["purge_selected_tokens"]

    def has_add_permission(self, request):
        return False

    @admin.action(description="Purge selected tokens and their files")
    def purge_selected_tokens(self, request, queryset):
        """Force selected tokens to DELETED and remove their bytes."""
        purged = 0
        for token in queryset.exclude(status=Token.Status.DELETED):
            try:
                purge_token(token)
            except StorageFailure as exc:
                self.message_user(
                    request,
                    f"Could not purge {token.path}: {exc.message}",
                    level=messages.ERROR,
                )
                continue
            purged += 1
        self.message_user(request, f"{purged} token(s) purged.")


@admin.register(File)
class FileAdmin(admin.ModelAdmin):
    """Admin interface for uploaded files."""

    list_display = (
        "name",
        "token",
        "content_type",
        "size",
        "file_upload_status",
        "created_at",
        "deleted_at",
    )
    list_filter = ("file_upload_status", "content_type", "created_at")
    search_fields = ("name", "path", "token__path")
    readonly_fields = (
        "pk",
        "token",
        "name",
        "path",
        "content_type",
        "size",
        "file_upload_status",
        "created_at",
        "deleted_at",
    )
    list_select_related = ("token",)
    date_hierarchy = "created_at"

    def has_add_permission(self, request):
        return False
