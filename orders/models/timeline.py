"""
orders.models.timeline

Append-only audit trail for an order. Rows are inserted, never updated; the
only way they disappear is the cascade when the order itself is deleted.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from .order import Order


class OrderTimelineEvent(models.Model):
    MANUAL = "manual"
    SYSTEM = "system"
    WEBHOOK = "webhook"
    API = "api"
    ADMIN = "admin"

    SOURCE_CHOICES = [
        (MANUAL, "Manual"),
        (SYSTEM, "System"),
        (WEBHOOK, "Webhook"),
        (API, "API"),
        (ADMIN, "Admin"),
    ]

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="timeline_events")
    event_type = models.CharField(max_length=64, db_index=True)
    description = models.CharField(max_length=500)
    event_data = models.JSONField(default=dict, blank=True)
    trigger_source = models.CharField(max_length=16, choices=SOURCE_CHOICES, default=MANUAL)
    triggered_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ("-created_at", "-id")
        indexes = [
            models.Index(fields=["order", "created_at"], name="orders_tl_order_dt"),
        ]

    def __str__(self) -> str:
        return f"TimelineEvent({self.order_id}:{self.event_type})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Timeline events are append-only.")
        super().save(*args, **kwargs)
