from __future__ import annotations

import os

import django


os.environ.setdefault("DJANGO_SECRET_KEY", "test-secret")
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "backend.settings")
os.environ.setdefault("FRED_API_KEY", "test-key")
os.environ.setdefault("FRED_BASE_URL", "https://fred.test/fred/series/observations")

django.setup()
