"""
orders.services.transitions

Status transition engine.

transition() checks the workflow graph, then writes the new status with a
compare-and-swap (``UPDATE ... WHERE status = <expected>``). The status write,
its side effects and the timeline event share one transaction. The shipping
fee checkout is created before any lock is taken.

Side effects
- submitted -> paid            totals + paid_at, full_payment row -> succeeded, ETA
- in_production -> shipping    if a shipping fee is due: open a shipping_fee
                               checkout and stay in_production until it is paid
- * -> shipping / shipped      tracking_number / estimated_delivery from details
- * -> delivered               actual_delivery = now
- legacy deposit/balance paid  matching row -> succeeded, total_paid_amount
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from datetime import timezone as dt_timezone
from typing import Any, Dict, Optional

from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from .. import events
from .. import workflow as wf
from ..exceptions import ConflictError, ValidationError
from ..models import Order, OrderTimelineEvent, Payment
from ..repositories import OrderRepository
from . import eta
from .ledger import LedgerService
from .timeline import TimelineService

log = logging.getLogger(__name__)

# status reached -> phase whose payment it settles
PAID_PHASE_FOR_STATUS = {
    wf.PAID: wf.PHASE_FULL,
    wf.DEPOSIT_PAID: wf.PHASE_DEPOSIT,
    wf.BALANCE_PAID: wf.PHASE_BALANCE,
}


@dataclass
class TransitionResult:
    order: Order
    from_status: str
    to_status: str
    advanced: bool
    checkout: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order_id": self.order.pk,
            "order_number": self.order.order_number,
            "from": self.from_status,
            "to": self.to_status,
            "advanced": self.advanced,
            "checkout": self.checkout,
        }


def as_datetime(value: Any) -> Optional[datetime]:
    """Accept datetime / date / ISO string; naive values are read as UTC."""
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time(12, 0))
    else:
        dt = parse_datetime(str(value))
        if dt is None:
            d = parse_date(str(value))
            if d is None:
                raise ValidationError(f"Invalid date '{value}'.", code="invalid_date")
            dt = datetime.combine(d, time(12, 0))
    if timezone.is_naive(dt):
        dt = timezone.make_aware(dt, dt_timezone.utc)
    return dt


def _jsonable(details: Dict[str, Any]) -> Dict[str, Any]:
    out = {}
    for k, v in details.items():
        out[k] = v.isoformat() if isinstance(v, (datetime, date)) else v
    return out


def _needs_shipping_fee(order: Order, target: str) -> bool:
    return (order.status, target) == (wf.IN_PRODUCTION, wf.SHIPPING) and order.shipping_fee_due


class TransitionService:
    def __init__(
        self,
        ledger: LedgerService,
        orders: Optional[OrderRepository] = None,
        timeline: Optional[TimelineService] = None,
    ):
        self.ledger = ledger
        self.orders = orders or OrderRepository()
        self.timeline = timeline or TimelineService(orders=self.orders)

    def transition(
        self,
        order_id: Any,
        target: str,
        actor=None,
        *,
        source: str = OrderTimelineEvent.ADMIN,
        expected_status: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> TransitionResult:
        details = dict(details or {})

        # Stripe is never called while the row lock is held; the fee request
        # re-checks the status under its own lock before writing.
        order = self.orders.get(order_id)
        self._check(order, target, expected_status)
        seen = order.status
        if _needs_shipping_fee(order, target):
            return self._request_shipping_fee(order, details, source=source, actor=actor)

        with transaction.atomic():
            order = self.orders.get(order_id, for_update=True)
            self._check(order, target, seen)
            if _needs_shipping_fee(order, target):
                raise ConflictError(
                    f"Order {order.order_number} now owes a shipping fee; reload and retry.",
                    detail={"status": order.status, "to": target},
                )
            return self.advance(order, target, source=source, actor=actor, details=details)

    def _check(self, order: Order, target: str, expected_status: Optional[str]) -> None:
        if expected_status and order.status != expected_status:
            raise ConflictError(
                f"Order {order.order_number} is '{order.status}', expected '{expected_status}'.",
                detail={"status": order.status, "expected": expected_status},
            )
        wf.check_transition(order.workflow, order.status, target)

    def _request_shipping_fee(self, order: Order, details: Dict[str, Any], *, source: str, actor=None) -> TransitionResult:
        shipping_request = _jsonable(
            {k: details[k] for k in ("tracking_number", "estimated_delivery") if details.get(k)}
        )
        checkout = self.ledger.create_checkout_session(
            order,
            wf.PHASE_SHIPPING_FEE,
            actor,
            source=source,
            metadata={"shipping_request": shipping_request},
            expected_status=order.status,
        )
        self.timeline.append_event(
            order,
            events.SHIPPING_FEE_REQUESTED,
            "Shipping fee requested before the order can ship",
            data=events.ShippingFeeRequested(
                amount_cents=checkout.payment.amount_cents,
                checkout_session_id=checkout.session_id,
                url=checkout.url,
            ),
            source=source,
            actor=actor,
        )
        log.info(
            "shipping fee requested order=%s amount=%s session=%s",
            order.order_number,
            checkout.payment.amount_cents,
            checkout.session_id,
        )
        return TransitionResult(
            order=order,
            from_status=order.status,
            to_status=order.status,
            advanced=False,
            checkout=checkout.to_dict(),
        )

    def advance(
        self,
        order: Order,
        target: str,
        *,
        source: str,
        actor=None,
        details: Optional[Dict[str, Any]] = None,
        extra_changes: Optional[Dict[str, Any]] = None,
    ) -> TransitionResult:
        """
        Apply an already-validated edge to a locked order. Callers run this
        inside their own transaction.
        """
        details = dict(details or {})
        current = order.status
        now = timezone.now()
        changes: Dict[str, Any] = {"status": target, **(extra_changes or {})}

        if target == wf.PAID:
            changes["total_paid_amount"] = order.total_amount
            changes["paid_at"] = now
            if order.estimated_delivery is None:
                schedule = eta.compute_schedule(order.lead_time_snapshot, order.created_at, now)
                changes["estimated_delivery"] = schedule["delivery_window"]["end"]
        elif target in (wf.SHIPPING, wf.SHIPPED):
            if details.get("tracking_number"):
                changes["tracking_number"] = str(details["tracking_number"]).strip()
            estimated = as_datetime(details.get("estimated_delivery"))
            if estimated is not None:
                changes["estimated_delivery"] = estimated
        elif target == wf.DELIVERED:
            changes["actual_delivery"] = now

        if not self.orders.compare_and_set(order.pk, expected_status=current, changes=changes):
            raise ConflictError(
                f"Order {order.order_number} changed while moving to '{target}'; reload and retry.",
                detail={"expected": current, "to": target},
            )
        for name, value in changes.items():
            setattr(order, name, value)

        phase = PAID_PHASE_FOR_STATUS.get(target)
        if phase is not None:
            self.ledger.record_status(order, phase, Payment.SUCCEEDED, source=source, actor=actor)
            if order.workflow == wf.WORKFLOW_LEGACY:
                self.orders.update_fields(order, total_paid_amount=self.ledger.paid_total(order))

        self.timeline.append_event(
            order,
            events.STATUS_CHANGED,
            f"Status changed from {current} to {target}",
            data=events.StatusChanged(from_status=current, to_status=target, details=_jsonable(details)),
            source=source,
            actor=actor,
        )
        log.info("order=%s status=%s->%s source=%s", order.order_number, current, target, source)
        return TransitionResult(order=order, from_status=current, to_status=target, advanced=True)
