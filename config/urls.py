"""
URL configuration for the ManAIger backend.

The JSON API lives under /api/; health probes under /health/.
"""

from django.contrib import admin
from django.urls import path, include

from core.views_health import HealthCheckView, ReadinessCheckView

urlpatterns = [
    # Admin
    path("admin/", admin.site.urls),

    # Health checks
    path('health/', HealthCheckView.as_view(), name='health'),
    path('health/ready/', ReadinessCheckView.as_view(), name='health-ready'),

    # Feature apps
    path("api/", include("core.urls")),
    path("api/", include("matching.urls")),
    path("api/", include("deals.urls")),
    path("api/", include("outreach.urls")),
]
