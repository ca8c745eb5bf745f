"""
orders.services.reconciliation

Converges the ledger + order with Stripe's view of a payment.

Two entry points, one code path:
- handle_event(event)   verified webhook payload (Stripe pushes)
- reconcile(...)        client asks after the redirect (we pull from Stripe)

Both end in apply(order_id, phase, provider_status). apply is idempotent:
  - the payment row is upserted on (order, phase) and only moves forward
  - the order only advances while it is still in the phase's pre-state
so a re-delivered success neither duplicates rows nor re-advances the order
nor writes another timeline event.

Correlation: ``metadata.order_id`` + ``metadata.phase`` (``orderId`` is still
accepted from older sessions), else the stored session / intent / invoice id.

========= CHANGE LOG =========
2026-10-05 • ADD: checkout.session.* + payment_intent.* handlers, reconcile(session_id).
2026-10-08 • ADD: invoice.paid, reconcile(order_id, phase) via stored ids.
2026-10-10 • ADD: charge.refunded -> refunded / partially_refunded (payment row only).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from django.db import transaction
from django.utils import timezone

from .. import workflow as wf
from ..exceptions import NotFoundError, ReconciliationError, ValidationError
from ..models import Order, OrderTimelineEvent, Payment
from ..repositories import OrderRepository, PaymentRepository
from .ledger import LedgerService
from .transitions import TransitionService

log = logging.getLogger(__name__)

# Stripe object status -> ledger status
PROVIDER_STATUS = {
    "succeeded": Payment.SUCCEEDED,
    "paid": Payment.SUCCEEDED,
    "processing": Payment.PROCESSING,
    "requires_capture": Payment.PROCESSING,
    "requires_payment_method": Payment.REQUIRES_PAYMENT_METHOD,
    "requires_action": Payment.REQUIRES_ACTION,
    "requires_confirmation": Payment.REQUIRES_ACTION,
    "failed": Payment.FAILED,
    "canceled": Payment.CANCELED,
    "expired": Payment.CANCELED,
    "refunded": Payment.REFUNDED,
    "partially_refunded": Payment.PARTIALLY_REFUNDED,
}

PHASE_ALIASES = {"full": wf.PHASE_FULL}


@dataclass
class ReconcileResult:
    order: Order
    payment: Optional[Payment]
    changed: bool
    advanced: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order_id": self.order.pk,
            "order_number": self.order.order_number,
            "order_status": self.order.status,
            "phase": self.payment.phase if self.payment else None,
            "payment_status": self.payment.status if self.payment else None,
            "changed": self.changed,
            "advanced": self.advanced,
        }


def _obj_id(value: Any) -> str:
    """Stripe fields can be an id string or an expanded object."""
    if isinstance(value, dict):
        return value.get("id") or ""
    return value or ""


class ReconciliationService:
    def __init__(
        self,
        gateway,
        ledger: LedgerService,
        transitions: TransitionService,
        orders: Optional[OrderRepository] = None,
        payments: Optional[PaymentRepository] = None,
    ):
        self.gateway = gateway
        self.ledger = ledger
        self.transitions = transitions
        self.orders = orders or OrderRepository()
        self.payments = payments or PaymentRepository()

    # ----------------------------
    # correlation
    # ----------------------------

    def correlate(
        self,
        metadata: Optional[Dict[str, Any]],
        *,
        session_id: str = "",
        intent_id: str = "",
        invoice_id: str = "",
    ) -> Tuple[Any, str]:
        md = metadata or {}
        order_id = md.get("order_id") or md.get("orderId")
        phase = md.get("phase")
        if order_id and phase:
            return order_id, PHASE_ALIASES.get(phase, phase)

        payment = (
            self.payments.find_by_session(session_id)
            or self.payments.find_by_intent(intent_id)
            or self.payments.find_by_invoice(invoice_id)
        )
        if payment is not None:
            return payment.order_id, payment.phase

        raise ReconciliationError(
            "Cannot correlate the payment to an order/phase.",
            detail={"session_id": session_id, "payment_intent_id": intent_id, "invoice_id": invoice_id},
        )

    # ----------------------------
    # shared apply
    # ----------------------------

    def apply(
        self,
        order_id: Any,
        phase: str,
        provider_status: str,
        *,
        source: str,
        actor=None,
        amount_cents: Optional[int] = None,
        **correlation: str,
    ) -> ReconcileResult:
        target = PROVIDER_STATUS.get(provider_status)
        if target is None:
            raise ReconciliationError(
                f"Unsupported provider status '{provider_status}'.", detail={"status": provider_status}
            )

        with transaction.atomic():
            try:
                order = self.orders.get(order_id, for_update=True)
            except NotFoundError:
                raise ReconciliationError(f"Order {order_id} does not exist.", detail={"order_id": str(order_id)})
            if phase not in wf.CHARGEABLE_PHASES[order.workflow]:
                raise ReconciliationError(
                    f"Phase '{phase}' does not apply to order {order.order_number}.",
                    detail={"phase": phase, "workflow": order.workflow},
                )

            try:
                payment, changed = self.ledger.record_status(
                    order, phase, target, source=source, actor=actor, amount_cents=amount_cents, **correlation
                )
            except ValidationError as exc:
                raise ReconciliationError(exc.message, detail={"phase": phase, "reason": exc.code, **exc.detail})
            advanced = False
            if payment.status == Payment.SUCCEEDED:
                advanced = self._advance_for_phase(order, payment, source=source, actor=actor)

        log.info(
            "reconciled order=%s phase=%s provider=%s payment=%s changed=%s advanced=%s",
            order.order_number,
            phase,
            provider_status,
            payment.status,
            changed,
            advanced,
        )
        return ReconcileResult(order=order, payment=payment, changed=changed, advanced=advanced)

    def _advance_for_phase(self, order: Order, payment: Payment, *, source: str, actor=None) -> bool:
        extra: Dict[str, Any] = {}
        details: Dict[str, Any] = {}
        requested = True
        if payment.phase == wf.PHASE_SHIPPING_FEE:
            # only a fee staff asked for as part of moving to shipping ships the order
            requested = "shipping_request" in payment.metadata
            details = dict(payment.metadata.get("shipping_request") or {})
            if order.shipping_paid_at is None:
                extra["shipping_paid_at"] = payment.paid_at or timezone.now()

        edge = wf.phase_transition(order.workflow, payment.phase)
        if not requested or edge is None or order.status != edge[0]:
            if extra:
                self.orders.update_fields(order, **extra)
            return False

        self.transitions.advance(order, edge[1], source=source, actor=actor, details=details, extra_changes=extra)
        return True

    # ----------------------------
    # webhook
    # ----------------------------

    def handle_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """
        Dispatch a verified Stripe event. Unknown types are acknowledged and
        ignored; a missing correlation raises ReconciliationError.
        """
        event_type = event.get("type") or ""
        obj = (event.get("data") or {}).get("object") or {}
        handler = self._handlers().get(event_type)
        if handler is None:
            log.info("stripe event ignored type=%s id=%s", event_type, event.get("id"))
            return {"handled": False, "type": event_type}

        result = handler(obj)
        return {"handled": True, "type": event_type, "result": result.to_dict()}

    def _handlers(self) -> Dict[str, Callable[[Dict[str, Any]], ReconcileResult]]:
        return {
            "checkout.session.completed": self._on_session_completed,
            "checkout.session.async_payment_succeeded": lambda o: self._on_session(o, "paid"),
            "checkout.session.async_payment_failed": lambda o: self._on_session(o, "failed"),
            "checkout.session.expired": lambda o: self._on_session(o, "expired"),
            "payment_intent.succeeded": lambda o: self._on_intent(o, "succeeded"),
            "payment_intent.processing": lambda o: self._on_intent(o, "processing"),
            "payment_intent.payment_failed": lambda o: self._on_intent(o, "failed"),
            "payment_intent.canceled": lambda o: self._on_intent(o, "canceled"),
            "invoice.paid": self._on_invoice_paid,
            "charge.refunded": self._on_charge_refunded,
        }

    def _on_session_completed(self, session: Dict[str, Any]) -> ReconcileResult:
        # async methods (ACH, SEPA) complete with payment_status="unpaid"
        paid = session.get("payment_status") in ("paid", "no_payment_required")
        return self._on_session(session, "paid" if paid else "processing")

    def _on_session(self, session: Dict[str, Any], provider_status: str) -> ReconcileResult:
        session_id = session.get("id") or ""
        intent_id = _obj_id(session.get("payment_intent"))
        order_id, phase = self.correlate(session.get("metadata"), session_id=session_id, intent_id=intent_id)
        return self.apply(
            order_id,
            phase,
            provider_status,
            source=OrderTimelineEvent.WEBHOOK,
            stripe_checkout_session_id=session_id,
            stripe_payment_intent_id=intent_id,
        )

    def _on_intent(self, intent: Dict[str, Any], provider_status: str) -> ReconcileResult:
        intent_id = intent.get("id") or ""
        order_id, phase = self.correlate(intent.get("metadata"), intent_id=intent_id)
        return self.apply(
            order_id,
            phase,
            provider_status,
            source=OrderTimelineEvent.WEBHOOK,
            stripe_payment_intent_id=intent_id,
            stripe_charge_id=_obj_id(intent.get("latest_charge")),
        )

    def _on_invoice_paid(self, invoice: Dict[str, Any]) -> ReconcileResult:
        invoice_id = invoice.get("id") or ""
        intent_id = _obj_id(invoice.get("payment_intent"))
        order_id, phase = self.correlate(invoice.get("metadata"), invoice_id=invoice_id, intent_id=intent_id)
        return self.apply(
            order_id,
            phase,
            "paid",
            source=OrderTimelineEvent.WEBHOOK,
            stripe_invoice_id=invoice_id,
            stripe_payment_intent_id=intent_id,
            stripe_charge_id=_obj_id(invoice.get("charge")),
        )

    def _on_charge_refunded(self, charge: Dict[str, Any]) -> ReconcileResult:
        intent_id = _obj_id(charge.get("payment_intent"))
        order_id, phase = self.correlate(charge.get("metadata"), intent_id=intent_id)
        full = int(charge.get("amount_refunded") or 0) >= int(charge.get("amount") or 0)
        return self.apply(
            order_id,
            phase,
            "refunded" if full else "partially_refunded",
            source=OrderTimelineEvent.WEBHOOK,
            stripe_payment_intent_id=intent_id,
            stripe_charge_id=charge.get("id") or "",
        )

    # ----------------------------
    # client pull
    # ----------------------------

    def reconcile(
        self,
        session_id: Optional[str] = None,
        order_id: Any = None,
        phase: Optional[str] = None,
        actor=None,
    ) -> ReconcileResult:
        """
        Pull the authoritative state from Stripe and apply it.

        Accepts a checkout ``session_id``, or ``order_id`` + ``phase`` (the
        stored session / intent / invoice id is then used).
        """
        if session_id:
            return self._reconcile_session(session_id, actor=actor)
        if not (order_id and phase):
            raise ValidationError("Provide session_id, or order_id and phase.", code="missing_reference")

        phase = PHASE_ALIASES.get(phase, phase)
        order = self.orders.get(order_id)
        payment = self.payments.find(order, phase)
        if payment is None:
            raise ReconciliationError(
                f"No {phase} payment recorded for order {order.order_number}.", detail={"phase": phase}
            )

        if payment.stripe_checkout_session_id:
            return self._reconcile_session(payment.stripe_checkout_session_id, actor=actor)
        if payment.stripe_payment_intent_id:
            intent = self.gateway.retrieve_payment_intent(payment.stripe_payment_intent_id)
            return self._apply_or_current(
                order, payment, intent.get("status"), actor=actor, stripe_payment_intent_id=payment.stripe_payment_intent_id
            )
        if payment.stripe_invoice_id:
            invoice = self.gateway.retrieve_invoice(payment.stripe_invoice_id)
            status = {"paid": "paid", "void": "canceled", "uncollectible": "failed"}.get(invoice.get("status"))
            return self._apply_or_current(
                order,
                payment,
                status,
                actor=actor,
                stripe_invoice_id=payment.stripe_invoice_id,
                stripe_payment_intent_id=_obj_id(invoice.get("payment_intent")),
            )
        raise ReconciliationError(
            f"The {phase} payment for order {order.order_number} was never sent to Stripe.",
            detail={"phase": phase, "status": payment.status},
        )

    def _reconcile_session(self, session_id: str, *, actor=None) -> ReconcileResult:
        session = self.gateway.retrieve_checkout_session(session_id)
        intent_id = _obj_id(session.get("payment_intent"))
        order_id, phase = self.correlate(session.get("metadata"), session_id=session_id, intent_id=intent_id)

        if session.get("payment_status") in ("paid", "no_payment_required"):
            status = "paid"
        elif intent_id:
            status = self.gateway.retrieve_payment_intent(intent_id).get("status")
        elif session.get("status") == "expired":
            status = "expired"
        else:
            status = None

        try:
            order = self.orders.get(order_id)
        except NotFoundError:
            raise ReconciliationError(f"Order {order_id} does not exist.", detail={"session_id": session_id})
        payment = self.payments.find(order, phase)
        return self._apply_or_current(
            order,
            payment,
            status,
            actor=actor,
            phase=phase,
            stripe_checkout_session_id=session_id,
            stripe_payment_intent_id=intent_id,
        )

    def _apply_or_current(
        self,
        order: Order,
        payment: Optional[Payment],
        provider_status: Optional[str],
        *,
        actor=None,
        phase: Optional[str] = None,
        **correlation: str,
    ) -> ReconcileResult:
        phase = phase or payment.phase
        if provider_status not in PROVIDER_STATUS:
            # nothing settled on Stripe's side yet (open session / draft invoice)
            return ReconcileResult(order=order, payment=payment, changed=False, advanced=False)
        return self.apply(order.pk, phase, provider_status, source=OrderTimelineEvent.API, actor=actor, **correlation)
