"""
API URL routing for silograph_backend.
All API endpoints are prefixed with /api/v1/
"""
from django.urls import path, include

from .views import health_check


urlpatterns = [
    # Health check (no auth) - GET /api/v1/health/
    path('health/', health_check),
    # Silo hierarchy management
    path('silos/', include('silos.urls')),
    # Link audits and internal link suggestions
    path('', include('linking.urls')),
]
