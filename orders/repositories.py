"""
orders.repositories

Storage access for the order services. Services receive these objects in their
constructors instead of touching the ORM directly, so a test (or another
storage engine) can slot in behind the same methods.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from django.db.models import QuerySet
from django.utils import timezone

from .exceptions import NotFoundError
from .models import Order, OrderTimelineEvent, Payment, ProductionUpdate


class OrderRepository:
    def get(self, order_id: Any, *, for_update: bool = False) -> Order:
        qs = Order.objects.select_related("user")
        if for_update:
            qs = qs.select_for_update()
        try:
            return qs.get(pk=order_id)
        except (Order.DoesNotExist, ValueError, TypeError):
            raise NotFoundError(f"Order {order_id} not found.", detail={"order_id": str(order_id)})

    def number_exists(self, number: str) -> bool:
        return Order.objects.filter(order_number=number).exists()

    def add(self, order: Order) -> Order:
        order.save()
        return order

    def compare_and_set(self, order_id: Any, *, expected_status: str, changes: Dict[str, Any]) -> bool:
        """
        Apply ``changes`` only if the row still has ``expected_status``.
        Returns False when another writer moved the order first.
        """
        changes = dict(changes)
        changes.setdefault("updated_at", timezone.now())
        updated = Order.objects.filter(pk=order_id, status=expected_status).update(**changes)
        return updated == 1

    def update_fields(self, order: Order, **changes: Any) -> Order:
        for name, value in changes.items():
            setattr(order, name, value)
        order.save(update_fields=[*changes.keys(), "updated_at"])
        return order

    def for_user(self, user) -> QuerySet:
        return Order.objects.filter(user=user)

    def for_guest(self, email: str) -> QuerySet:
        return Order.objects.filter(guest_email__iexact=(email or "").strip())

    def all(self) -> QuerySet:
        return Order.objects.select_related("user").all()


class PaymentRepository:
    def find(self, order: Order, phase: str, *, for_update: bool = False) -> Optional[Payment]:
        qs = Payment.objects.filter(order=order, phase=phase)
        if for_update:
            qs = qs.select_for_update()
        return qs.first()

    def find_by_session(self, session_id: str) -> Optional[Payment]:
        if not session_id:
            return None
        return Payment.objects.select_related("order").filter(stripe_checkout_session_id=session_id).first()

    def find_by_intent(self, payment_intent_id: str) -> Optional[Payment]:
        if not payment_intent_id:
            return None
        return Payment.objects.select_related("order").filter(stripe_payment_intent_id=payment_intent_id).first()

    def find_by_invoice(self, invoice_id: str) -> Optional[Payment]:
        if not invoice_id:
            return None
        return Payment.objects.select_related("order").filter(stripe_invoice_id=invoice_id).first()

    def create_many(self, rows: Iterable[Payment]) -> list:
        return Payment.objects.bulk_create(list(rows))

    def upsert(self, order: Order, phase: str, *, defaults: Dict[str, Any]) -> tuple:
        """Insert-or-update keyed by (order, phase). Returns (payment, created)."""
        return Payment.objects.update_or_create(order=order, phase=phase, defaults=defaults)

    def save(self, payment: Payment, fields: Iterable[str]) -> Payment:
        payment.save(update_fields=[*fields, "updated_at"])
        return payment

    def for_order(self, order: Order) -> QuerySet:
        return Payment.objects.filter(order=order).order_by("created_at", "id")


class TimelineRepository:
    def append(self, **fields: Any) -> OrderTimelineEvent:
        return OrderTimelineEvent.objects.create(**fields)

    def for_order(self, order: Order) -> QuerySet:
        return OrderTimelineEvent.objects.filter(order=order).order_by("-created_at", "-id")

    def add_production_update(self, **fields: Any) -> ProductionUpdate:
        return ProductionUpdate.objects.create(**fields)

    def production_updates(self, order: Order, *, visible_only: bool = False) -> QuerySet:
        qs = ProductionUpdate.objects.filter(order=order)
        if visible_only:
            qs = qs.filter(visible_to_customer=True)
        return qs.order_by("-created_at", "-id")
