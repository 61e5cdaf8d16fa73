"""API URL configuration."""
from __future__ import annotations

from django.urls import path

from backend.api.views import AdapterView

urlpatterns = [
    path("", AdapterView.as_view(), name="adapter"),
]
