from django.conf import settings
from django.db import models

from .base import TimeStampedModel
from .order import Order


class ProductionUpdate(TimeStampedModel):
    """Shop-floor progress note; customers only see rows flagged visible."""

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="production_updates")
    stage = models.CharField(max_length=64)
    status = models.CharField(max_length=64)
    description = models.TextField(blank=True, default="")
    photos = models.JSONField(default=list, blank=True)
    visible_to_customer = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        ordering = ("-created_at", "-id")

    def __str__(self) -> str:
        return f"ProductionUpdate({self.order_id}:{self.stage}/{self.status})"
