"""
URL routing for linking app.
"""
from django.urls import path

from . import views

urlpatterns = [
    path('silos/<uuid:silo_id>/audit/', views.silo_audit, name='silo-audit'),
    path('link-audits/', views.link_audit_list, name='link-audit-list'),
    path('link-suggestions/', views.link_suggestions, name='link-suggestions'),
]
