"""URL configuration for vrac."""

from django.contrib import admin
from django.http import JsonResponse
from django.urls import path


def healthz(request):
    """Liveness probe, no I/O."""
    return JsonResponse({"status": "ok"})


urlpatterns = [
    path("healthz/", healthz, name="healthz"),
    path("admin/", admin.site.urls),
]
