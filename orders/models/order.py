"""
orders.models.order

The Order aggregate: product/customization snapshot, computed amounts,
lifecycle status and shipping data.

Invariants kept at this layer:
- exactly one of ``user`` / ``guest_email`` is set (DB check constraint)
- ``total_amount`` never decreases once saved

========= CHANGE LOG =========
2026-10-03 • ADD: Order model (simplified + legacy workflow in one table).
2026-10-09 • ADD: shipping_fee_cents / shipping_paid_at for fee-on-ship.
2026-10-12 • ADD: lead_time_snapshot captured at creation for ETA.
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models

from .. import workflow as wf
from .base import TimeStampedModel


class Order(TimeStampedModel):
    WORKFLOW_CHOICES = [
        (wf.WORKFLOW_SIMPLIFIED, "Simplified (full payment)"),
        (wf.WORKFLOW_LEGACY, "Legacy (deposit + balance)"),
    ]
    STATUS_CHOICES = [(s, s.replace("_", " ").title()) for s in wf.ALL_STATUSES]

    order_number = models.CharField(max_length=32, unique=True)

    # ---- ownership (exactly one) ----
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="apparel_orders",
    )
    guest_email = models.EmailField(blank=True, default="", db_index=True)
    customer_name = models.CharField(max_length=255, blank=True, default="")
    company_name = models.CharField(max_length=255, blank=True, default="")

    # ---- commercial snapshot ----
    product_name = models.CharField(max_length=255)
    product_category = models.CharField(max_length=120)
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default="usd")

    # ---- customization ----
    customization = models.JSONField(default=dict, blank=True)
    colors = models.JSONField(default=list, blank=True)
    sizes = models.JSONField(default=dict, blank=True, help_text="Size -> quantity; values sum to quantity.")
    print_locations = models.JSONField(default=list, blank=True)

    # ---- lifecycle ----
    workflow = models.CharField(
        max_length=16,
        choices=WORKFLOW_CHOICES,
        default=wf.WORKFLOW_SIMPLIFIED,
    )
    status = models.CharField(max_length=32, choices=STATUS_CHOICES, db_index=True)

    # ---- payment-adjacent ----
    total_paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    paid_at = models.DateTimeField(null=True, blank=True)
    deposit_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    balance_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    # ---- shipping ----
    shipping_address = models.JSONField(default=dict, blank=True)
    tracking_number = models.CharField(max_length=120, blank=True, default="")
    estimated_delivery = models.DateTimeField(null=True, blank=True)
    actual_delivery = models.DateTimeField(null=True, blank=True)
    shipping_fee_cents = models.PositiveIntegerField(null=True, blank=True)
    shipping_paid_at = models.DateTimeField(null=True, blank=True)

    # ---- notes / schedule ----
    customer_notes = models.TextField(blank=True, default="")
    admin_notes = models.TextField(blank=True, default="")
    lead_time_snapshot = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ("-created_at",)
        indexes = [
            models.Index(fields=["status", "created_at"], name="orders_status_dt"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    (models.Q(user__isnull=False) & models.Q(guest_email=""))
                    | (models.Q(user__isnull=True) & ~models.Q(guest_email=""))
                ),
                name="orders_order_single_owner",
            ),
        ]

    def __str__(self) -> str:
        return f"Order({self.order_number})<{self.status}>"

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._loaded_total = instance.__dict__.get("total_amount")
        return instance

    def save(self, *args, **kwargs):
        loaded = getattr(self, "_loaded_total", None)
        if loaded is not None and self.total_amount is not None and Decimal(self.total_amount) < Decimal(loaded):
            raise ValueError(f"total_amount cannot decrease ({loaded} -> {self.total_amount}).")
        super().save(*args, **kwargs)
        self._loaded_total = self.total_amount

    # ---- helpers ----

    @property
    def owner_email(self) -> str:
        if self.guest_email:
            return self.guest_email
        return getattr(self.user, "email", "") or ""

    @property
    def total_cents(self) -> int:
        return int((Decimal(self.total_amount) * 100).quantize(Decimal("1")))

    @property
    def shipping_fee_due(self) -> bool:
        return bool(self.shipping_fee_cents) and self.shipping_paid_at is None
