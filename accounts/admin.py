"""Admin configuration for the credential store."""

from django.contrib import admin

from accounts.models import Principal


@admin.register(Principal)
class PrincipalAdmin(admin.ModelAdmin):
    """Admin interface for principals. Secrets are never editable here."""

    list_display = ("id", "scheme")
    list_filter = ("scheme",)
    search_fields = ("id",)
    readonly_fields = ("id", "scheme", "secret_data")

    def has_add_permission(self, request):
        # Principals are created with the create_principal command so the
        # secret goes through the configured hasher.
        return False
