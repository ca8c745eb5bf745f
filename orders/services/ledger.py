"""
orders.services.ledger

Payment ledger: per-phase amounts, the initial pending rows, and the provider
hand-offs (hosted checkout / hosted invoice).

Rules
- amounts are integer cents; deposit = round(total x 40%), balance = the rest
- one row per (order, phase); every write is an upsert on that key
- the provider is called FIRST; nothing is written if Stripe fails
- payment status only moves forward (Payment.can_move)

========= CHANGE LOG =========
2026-10-05 • ADD: initialize_payments + create_checkout_session (upsert -> processing).
2026-10-08 • ADD: create_invoice / resend_invoice (hosted invoice path).
2026-10-09 • ADD: shipping_fee phase (fee-on-ship).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Tuple

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from .. import events
from .. import workflow as wf
from ..exceptions import ConflictError, NotFoundError, ValidationError
from ..models import Order, OrderTimelineEvent, Payment
from ..notifications import send_payment_receipt
from ..repositories import OrderRepository, PaymentRepository
from .timeline import TimelineService

log = logging.getLogger(__name__)

CORRELATION_FIELDS = (
    "stripe_payment_intent_id",
    "stripe_checkout_session_id",
    "stripe_charge_id",
    "stripe_invoice_id",
)


@dataclass
class CheckoutResult:
    payment: Payment
    session_id: str
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "payment_id": self.payment.pk,
            "phase": self.payment.phase,
            "amount_cents": self.payment.amount_cents,
            "currency": self.payment.currency,
            "session_id": self.session_id,
            "url": self.url,
        }


@dataclass
class InvoiceResult:
    payment: Payment
    invoice_id: str
    hosted_invoice_url: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "payment_id": self.payment.pk if self.payment else None,
            "phase": self.payment.phase if self.payment else None,
            "invoice_id": self.invoice_id,
            "hosted_invoice_url": self.hosted_invoice_url,
        }


def default_shipping_fee_cents() -> int:
    return max(0, int(getattr(settings, "STOREFRONT_DEFAULT_SHIPPING_FEE_CENTS", 0) or 0))


class LedgerService:
    def __init__(
        self,
        gateway,
        orders: Optional[OrderRepository] = None,
        payments: Optional[PaymentRepository] = None,
        timeline: Optional[TimelineService] = None,
    ):
        self.gateway = gateway
        self.orders = orders or OrderRepository()
        self.payments = payments or PaymentRepository()
        self.timeline = timeline or TimelineService(orders=self.orders)

    def _order(self, order) -> Order:
        if isinstance(order, Order):
            return order
        return self.orders.get(order)

    # ----------------------------
    # amounts
    # ----------------------------

    def phase_amount_cents(self, order: Order, phase: str) -> int:
        total = order.total_cents
        if phase == wf.PHASE_FULL:
            return total
        if phase == wf.PHASE_DEPOSIT:
            return int((Decimal(total) * Decimal(str(wf.DEPOSIT_RATIO))).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        if phase == wf.PHASE_BALANCE:
            return total - self.phase_amount_cents(order, wf.PHASE_DEPOSIT)
        if phase == wf.PHASE_SHIPPING_FEE:
            fee = order.shipping_fee_cents or 0
            if fee <= 0:
                raise ValidationError("No shipping fee is configured for this order.", code="no_shipping_fee")
            return int(fee)
        raise ValidationError(f"Unknown payment phase '{phase}'.", code="invalid_phase")

    def paid_total(self, order: Order) -> Decimal:
        """Sum of settled product payments (shipping fee excluded), in currency units."""
        cents = sum(
            p.amount_cents
            for p in self.payments.for_order(order)
            if p.phase != wf.PHASE_SHIPPING_FEE and p.status == Payment.SUCCEEDED
        )
        return (Decimal(cents) / 100).quantize(Decimal("0.01"))

    # ----------------------------
    # rows
    # ----------------------------

    def initialize_payments(self, order: Order) -> List[Payment]:
        """One pending row per initial phase of the order's workflow (existing rows are kept)."""
        rows = []
        for phase in wf.INITIAL_PHASES[order.workflow]:
            if self.payments.find(order, phase) is not None:
                continue
            rows.append(
                Payment(
                    order=order,
                    phase=phase,
                    amount_cents=self.phase_amount_cents(order, phase),
                    currency=order.currency,
                    status=Payment.PENDING,
                )
            )
        created = self.payments.create_many(rows)
        log.info("ledger init order=%s phases=%s", order.order_number, ",".join(p.phase for p in created))
        return list(self.payments.for_order(order))

    def record_status(
        self,
        order: Order,
        phase: str,
        target: str,
        *,
        source: str,
        actor=None,
        amount_cents: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
        **correlation: str,
    ) -> Tuple[Payment, bool]:
        """
        Upsert the (order, phase) row to ``target``.

        Returns (payment, changed). A target that is not a forward move from the
        current status leaves the row as is (apart from filling in correlation
        ids it did not have yet) and writes no timeline event.
        """
        ids = {k: v for k, v in correlation.items() if k in CORRELATION_FIELDS and v}
        payment = self.payments.find(order, phase, for_update=True)
        current = payment.status if payment else None

        if payment is not None and not Payment.can_move(current, target):
            missing = [k for k, v in ids.items() if not getattr(payment, k)]
            for k in missing:
                setattr(payment, k, ids[k])
            if missing:
                self.payments.save(payment, missing)
            if current != target:
                log.warning(
                    "payment move ignored order=%s phase=%s status=%s->%s",
                    order.order_number,
                    phase,
                    current,
                    target,
                )
            return payment, False

        defaults: Dict[str, Any] = {"status": target, **ids}
        if payment is None:
            defaults["amount_cents"] = amount_cents if amount_cents is not None else self.phase_amount_cents(order, phase)
            defaults["currency"] = order.currency
        if target == Payment.SUCCEEDED:
            defaults["paid_at"] = timezone.now()
        if metadata:
            defaults["metadata"] = {**(payment.metadata if payment else {}), **metadata}

        payment, _ = self.payments.upsert(order, phase, defaults=defaults)

        self.timeline.append_event(
            order,
            events.PAYMENT_UPDATED,
            f"{wf.PHASE_LABELS.get(phase, phase)} payment {target.replace('_', ' ')}",
            data=events.PaymentUpdated(
                phase=phase,
                from_status=current,
                to_status=target,
                amount_cents=payment.amount_cents,
                payment_intent_id=payment.stripe_payment_intent_id,
                checkout_session_id=payment.stripe_checkout_session_id,
            ),
            source=source,
            actor=actor,
        )
        log.info("payment order=%s phase=%s status=%s->%s", order.order_number, phase, current, target)

        if target == Payment.SUCCEEDED:
            transaction.on_commit(lambda: send_payment_receipt(payment))
        return payment, True

    def list_payments(self, order) -> List[Payment]:
        return list(self.payments.for_order(self._order(order)))

    # ----------------------------
    # provider hand-offs
    # ----------------------------

    def _check_chargeable(self, order: Order, phase: str) -> None:
        wf.check_phase(order.workflow, phase)
        existing = self.payments.find(order, phase)
        if existing is not None and existing.is_settled:
            raise ConflictError(
                f"{wf.PHASE_LABELS.get(phase, phase)} for order {order.order_number} is already paid.",
                code="already_paid",
                detail={"phase": phase, "status": existing.status},
            )

    def create_checkout_session(
        self,
        order,
        phase: str,
        actor=None,
        *,
        source: str = OrderTimelineEvent.API,
        metadata: Optional[Dict[str, Any]] = None,
        expected_status: Optional[str] = None,
    ) -> CheckoutResult:
        order = self._order(order)
        self._check_chargeable(order, phase)
        amount = self.phase_amount_cents(order, phase)

        session = self.gateway.create_checkout_session(
            order=order, phase=phase, amount_cents=amount, currency=order.currency
        )
        session_id = session.get("id") or ""
        url = session.get("url") or ""

        with transaction.atomic():
            if expected_status is not None:
                order = self.orders.get(order.pk, for_update=True)
                if order.status != expected_status:
                    raise ConflictError(
                        f"Order {order.order_number} is '{order.status}', expected '{expected_status}'.",
                        detail={"status": order.status, "expected": expected_status},
                    )
            existing = self.payments.find(order, phase, for_update=True)
            defaults: Dict[str, Any] = {
                "status": Payment.PROCESSING,
                "amount_cents": amount,
                "currency": order.currency,
                "stripe_checkout_session_id": session_id,
                "metadata": {**(existing.metadata if existing else {}), **(metadata or {}), "checkout_url": url},
            }
            intent = session.get("payment_intent")
            if isinstance(intent, str) and intent:
                defaults["stripe_payment_intent_id"] = intent
            payment, _ = self.payments.upsert(order, phase, defaults=defaults)

            self.timeline.append_event(
                order,
                events.CHECKOUT_STARTED,
                f"Checkout started for {wf.PHASE_LABELS.get(phase, phase).lower()}",
                data=events.CheckoutStarted(phase=phase, amount_cents=amount, checkout_session_id=session_id, url=url),
                source=source,
                actor=actor,
            )

        log.info("checkout order=%s phase=%s amount=%s session=%s", order.order_number, phase, amount, session_id)
        return CheckoutResult(payment=payment, session_id=session_id, url=url)

    def create_invoice(
        self,
        order,
        phase: str,
        actor=None,
        *,
        days_until_due: Optional[int] = None,
        source: str = OrderTimelineEvent.ADMIN,
    ) -> InvoiceResult:
        order = self._order(order)
        self._check_chargeable(order, phase)
        amount = self.phase_amount_cents(order, phase)
        days = int(days_until_due or getattr(settings, "STOREFRONT_INVOICE_DAYS_UNTIL_DUE", 7))
        if days < 1:
            raise ValidationError("days_until_due must be at least 1.", code="invalid_days_until_due")

        invoice = self.gateway.create_invoice(
            order=order, phase=phase, amount_cents=amount, currency=order.currency, days_until_due=days
        )
        invoice_id = invoice.get("id") or ""
        hosted_url = invoice.get("hosted_invoice_url") or ""

        with transaction.atomic():
            existing = self.payments.find(order, phase, for_update=True)
            defaults: Dict[str, Any] = {
                "amount_cents": amount,
                "currency": order.currency,
                "stripe_invoice_id": invoice_id,
                "metadata": {
                    **(existing.metadata if existing else {}),
                    "invoice_id": invoice_id,
                    "hosted_invoice_url": hosted_url,
                    "invoice_pdf": invoice.get("invoice_pdf") or "",
                },
            }
            if existing is None or Payment.can_move(existing.status, Payment.REQUIRES_PAYMENT_METHOD):
                defaults["status"] = Payment.REQUIRES_PAYMENT_METHOD
            payment, _ = self.payments.upsert(order, phase, defaults=defaults)

            self.timeline.append_event(
                order,
                events.INVOICE_SENT,
                f"Invoice sent for {wf.PHASE_LABELS.get(phase, phase).lower()}",
                data=events.InvoiceSent(
                    phase=phase, amount_cents=amount, invoice_id=invoice_id, hosted_invoice_url=hosted_url
                ),
                source=source,
                actor=actor,
            )

        log.info("invoice order=%s phase=%s amount=%s invoice=%s", order.order_number, phase, amount, invoice_id)
        return InvoiceResult(payment=payment, invoice_id=invoice_id, hosted_invoice_url=hosted_url)

    def resend_invoice(self, invoice_id: str, actor=None, *, source: str = OrderTimelineEvent.ADMIN) -> InvoiceResult:
        invoice_id = (invoice_id or "").strip()
        if not invoice_id:
            raise ValidationError("invoice_id is required.", code="missing_invoice_id")
        payment = self.payments.find_by_invoice(invoice_id)
        if payment is None:
            raise NotFoundError(f"No payment found for invoice {invoice_id}.", detail={"invoice_id": invoice_id})

        invoice = self.gateway.resend_invoice(invoice_id)
        hosted_url = invoice.get("hosted_invoice_url") or payment.metadata.get("hosted_invoice_url", "")

        self.timeline.append_event(
            payment.order,
            events.INVOICE_SENT,
            f"Invoice re-sent for {wf.PHASE_LABELS.get(payment.phase, payment.phase).lower()}",
            data=events.InvoiceSent(
                phase=payment.phase,
                amount_cents=payment.amount_cents,
                invoice_id=invoice_id,
                hosted_invoice_url=hosted_url,
                resent=True,
            ),
            source=source,
            actor=actor,
        )
        log.info("invoice resent order=%s invoice=%s", payment.order.order_number, invoice_id)
        return InvoiceResult(payment=payment, invoice_id=invoice_id, hosted_invoice_url=hosted_url)
