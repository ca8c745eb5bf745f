# /home/techwithwayne/storefront/storefront/urls.py
"""
CHANGE LOG
----------
2026-10-05
- ADD: /api/ include for the orders app (orders, payments, reconcile, webhook).
2026-10-12
- CHANGE: /api/health/ now served by orders.views.health (database check + envelope).
"""

from django.contrib import admin
from django.urls import path, include


urlpatterns = [
    # Admin
    path("admin/", admin.site.urls),

    # Orders, payments, Stripe webhook, health
    path("api/", include("orders.urls")),
]
