"""
orders.models.payment

Payment ledger rows: one row per (order, phase). The unique constraint is the
upsert key used by checkout creation, invoicing and reconciliation, so
repeated clicks or re-delivered webhooks land on the same row.
"""

from __future__ import annotations

from django.db import models

from .. import workflow as wf
from .base import TimeStampedModel
from .order import Order


class Payment(TimeStampedModel):
    PENDING = "pending"
    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    REQUIRES_ACTION = "requires_action"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"

    STATUS_CHOICES = [
        (PENDING, "Pending"),
        (REQUIRES_PAYMENT_METHOD, "Requires payment method"),
        (REQUIRES_ACTION, "Requires action"),
        (PROCESSING, "Processing"),
        (SUCCEEDED, "Succeeded"),
        (FAILED, "Failed"),
        (CANCELED, "Canceled"),
        (REFUNDED, "Refunded"),
        (PARTIALLY_REFUNDED, "Partially refunded"),
    ]
    PHASE_CHOICES = [(p, wf.PHASE_LABELS[p]) for p in wf.PHASES]

    OPEN_STATUSES = frozenset({PENDING, REQUIRES_PAYMENT_METHOD, REQUIRES_ACTION, PROCESSING})
    OPEN_RANK = {PENDING: 0, REQUIRES_PAYMENT_METHOD: 1, REQUIRES_ACTION: 1, PROCESSING: 2}
    RETRYABLE_STATUSES = frozenset({FAILED, CANCELED})
    REFUND_STATUSES = frozenset({REFUNDED, PARTIALLY_REFUNDED})

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="payments")
    phase = models.CharField(max_length=20, choices=PHASE_CHOICES)
    amount_cents = models.PositiveIntegerField()
    currency = models.CharField(max_length=3, default="usd")
    status = models.CharField(max_length=32, choices=STATUS_CHOICES, default=PENDING, db_index=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    # ---- Stripe correlation ----
    stripe_payment_intent_id = models.CharField(max_length=255, blank=True, default="", db_index=True)
    stripe_checkout_session_id = models.CharField(max_length=255, blank=True, default="", db_index=True)
    stripe_charge_id = models.CharField(max_length=255, blank=True, default="")
    stripe_invoice_id = models.CharField(max_length=255, blank=True, default="", db_index=True)

    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ("created_at", "id")
        constraints = [
            models.UniqueConstraint(fields=["order", "phase"], name="orders_payment_order_phase"),
        ]

    def __str__(self) -> str:
        return f"Payment({self.order_id}:{self.phase})<{self.status} {self.amount_cents}>"

    @classmethod
    def can_move(cls, current: str, target: str) -> bool:
        """
        Forward-only payment status rule.

        open -> a later open state, succeeded, failed or canceled;
        failed/canceled -> a new attempt (requires_action / processing) or
        succeeded; succeeded -> refunds only; partial refund -> full refund.
        """
        if current == target:
            return False
        if current in cls.OPEN_STATUSES:
            if target in cls.OPEN_STATUSES:
                return cls.OPEN_RANK[target] > cls.OPEN_RANK[current]
            return target == cls.SUCCEEDED or target in cls.RETRYABLE_STATUSES
        if current in cls.RETRYABLE_STATUSES:
            return target in (cls.REQUIRES_ACTION, cls.PROCESSING, cls.SUCCEEDED)
        if current == cls.SUCCEEDED:
            return target in cls.REFUND_STATUSES
        if current == cls.PARTIALLY_REFUNDED:
            return target == cls.REFUNDED
        return False

    @property
    def is_settled(self) -> bool:
        return self.status == self.SUCCEEDED or self.status in self.REFUND_STATUSES
