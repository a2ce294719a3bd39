"""
URL routing for silos app.
"""
from django.urls import path

from . import views

urlpatterns = [
    path('', views.silo_list, name='silo-list'),
    path('<uuid:silo_id>/hierarchy/', views.silo_hierarchy, name='silo-hierarchy'),
]
