"""
orders.services.orders

Order creation + the read side + the customer "pay" action.

create_order rules
- quantity >= MOQ (50)
- sizes: size -> qty, values sum to quantity
- at least one print placement (print_locations or customization.placements)
- an authenticated user OR a guest_email (never both, never neither)
- total_amount = quantity x unit_price; a client total must agree within $0.01

Access
- staff see every order
- a signed-in customer sees their own
- a guest sees orders placed with the guest_email they supply
Anything else is reported as not found.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Optional

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.db import transaction
from django.db.models import QuerySet

from .. import events
from .. import workflow as wf
from ..exceptions import NotFoundError, ValidationError
from ..models import Order, OrderTimelineEvent
from ..notifications import send_order_confirmation
from ..order_numbers import generate_unique_order_number
from ..repositories import OrderRepository
from . import eta
from .ledger import LedgerService, default_shipping_fee_cents
from .timeline import TimelineService, actor_user
from .transitions import TransitionResult, TransitionService

log = logging.getLogger(__name__)

CENT = Decimal("0.01")
TOTAL_TOLERANCE = Decimal("0.01")


def _is_staff(actor) -> bool:
    return bool(actor_user(actor) and getattr(actor, "is_staff", False))


def _decimal(value: Any, field: str) -> Decimal:
    try:
        d = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a number.", code="invalid_amount", detail={"field": field})
    if not d.is_finite():
        raise ValidationError(f"{field} must be a number.", code="invalid_amount", detail={"field": field})
    return d


def _int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a whole number.", code="invalid_quantity", detail={"field": field})
    try:
        d = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a whole number.", code="invalid_quantity", detail={"field": field})
    if not d.is_finite() or d != d.to_integral_value():
        raise ValidationError(f"{field} must be a whole number.", code="invalid_quantity", detail={"field": field})
    return int(d)


def validate_sizes(sizes: Any, quantity: int) -> Dict[str, int]:
    if not isinstance(sizes, dict) or not sizes:
        raise ValidationError("sizes must map each size to a quantity.", code="invalid_sizes")
    clean: Dict[str, int] = {}
    for size, qty in sizes.items():
        n = _int(qty, f"sizes.{size}")
        if n < 0:
            raise ValidationError(f"sizes.{size} cannot be negative.", code="invalid_sizes")
        clean[str(size)] = n
    total = sum(clean.values())
    if total != quantity:
        raise ValidationError(
            f"Size quantities add up to {total}, but the order quantity is {quantity}.",
            code="sizes_mismatch",
            detail={"sizes_total": total, "quantity": quantity},
        )
    return clean


def placements_of(print_locations: Any, customization: Dict[str, Any]) -> list:
    locations = [p for p in (print_locations or []) if p]
    if not locations:
        locations = [p for p in (customization.get("placements") or []) if p]
    return locations


class OrderService:
    def __init__(
        self,
        ledger: LedgerService,
        transitions: TransitionService,
        orders: Optional[OrderRepository] = None,
        timeline: Optional[TimelineService] = None,
    ):
        self.ledger = ledger
        self.transitions = transitions
        self.orders = orders or OrderRepository()
        self.timeline = timeline or TimelineService(orders=self.orders)

    # ----------------------------
    # create
    # ----------------------------

    def create_order(self, payload: Dict[str, Any], actor=None) -> Order:
        data = dict(payload or {})
        user = actor_user(actor)

        workflow = data.get("workflow") or wf.WORKFLOW_SIMPLIFIED
        if workflow not in wf.WORKFLOWS:
            raise ValidationError(f"Unknown workflow '{workflow}'.", code="unknown_workflow")

        product_name = (data.get("product_name") or "").strip()
        product_category = (data.get("product_category") or "").strip()
        if not product_name or not product_category:
            raise ValidationError("product_name and product_category are required.", code="missing_product")

        quantity = _int(data.get("quantity"), "quantity")
        if quantity < wf.MOQ:
            raise ValidationError(
                f"Minimum order quantity is {wf.MOQ} units.",
                code="below_moq",
                detail={"quantity": quantity, "moq": wf.MOQ},
            )
        sizes = validate_sizes(data.get("sizes"), quantity)

        customization = data.get("customization") or {}
        if not isinstance(customization, dict):
            raise ValidationError("customization must be an object.", code="invalid_customization")
        print_locations = placements_of(data.get("print_locations"), customization)
        if not print_locations:
            raise ValidationError("At least one print placement is required.", code="missing_placement")

        guest_email = ""
        if user is None:
            guest_email = (data.get("guest_email") or "").strip().lower()
            if not guest_email:
                raise ValidationError("Sign in or provide a guest email.", code="missing_identity")
            try:
                validate_email(guest_email)
            except DjangoValidationError:
                raise ValidationError("guest_email is not a valid email address.", code="invalid_email")

        unit_price = _decimal(data.get("unit_price"), "unit_price")
        if unit_price <= 0:
            raise ValidationError("unit_price must be greater than zero.", code="invalid_amount")
        unit_price = unit_price.quantize(CENT, rounding=ROUND_HALF_UP)
        total = (unit_price * quantity).quantize(CENT, rounding=ROUND_HALF_UP)
        if data.get("total_amount") not in (None, ""):
            client_total = _decimal(data["total_amount"], "total_amount")
            if abs(client_total - total) > TOTAL_TOLERANCE:
                raise ValidationError(
                    f"Total {client_total} does not match {quantity} x {unit_price} = {total}.",
                    code="total_mismatch",
                    detail={"expected": str(total), "received": str(client_total)},
                )

        shipping_fee = None
        if workflow == wf.WORKFLOW_SIMPLIFIED:
            raw_fee = data.get("shipping_fee_cents")
            fee = default_shipping_fee_cents() if raw_fee in (None, "") else _int(raw_fee, "shipping_fee_cents")
            if fee < 0:
                raise ValidationError("shipping_fee_cents cannot be negative.", code="invalid_amount")
            shipping_fee = fee or None

        with transaction.atomic():
            order = Order(
                order_number=generate_unique_order_number(exists=self.orders.number_exists),
                user=user,
                guest_email=guest_email,
                customer_name=(data.get("customer_name") or "").strip(),
                company_name=(data.get("company_name") or "").strip(),
                product_name=product_name,
                product_category=product_category,
                quantity=quantity,
                unit_price=unit_price,
                total_amount=total,
                currency=(data.get("currency") or getattr(settings, "STOREFRONT_CURRENCY", "usd")).lower(),
                customization=customization,
                colors=list(data.get("colors") or []),
                sizes=sizes,
                print_locations=print_locations,
                workflow=workflow,
                status=wf.INITIAL_STATUS[workflow],
                shipping_address=data.get("shipping_address") or {},
                shipping_fee_cents=shipping_fee,
                customer_notes=(data.get("customer_notes") or "").strip(),
                lead_time_snapshot=eta.current_lead_times(),
            )
            if workflow == wf.WORKFLOW_LEGACY:
                deposit = self.ledger.phase_amount_cents(order, wf.PHASE_DEPOSIT)
                order.deposit_amount = (Decimal(deposit) / 100).quantize(CENT)
                order.balance_amount = total - order.deposit_amount
            self.orders.add(order)

            self.ledger.initialize_payments(order)
            self.timeline.append_event(
                order,
                events.ORDER_CREATED,
                f"Order {order.order_number} created",
                data=events.OrderCreated(
                    order_number=order.order_number,
                    workflow=workflow,
                    status=order.status,
                    total_amount=str(total),
                    quantity=quantity,
                ),
                source=OrderTimelineEvent.API,
                actor=actor,
            )
            transaction.on_commit(lambda: send_order_confirmation(order))

        log.info(
            "order created order=%s workflow=%s qty=%s total=%s owner=%s",
            order.order_number,
            workflow,
            quantity,
            total,
            "user" if user else "guest",
        )
        return order

    # ----------------------------
    # read
    # ----------------------------

    def can_view(self, order: Order, actor=None, guest_email: Optional[str] = None) -> bool:
        if _is_staff(actor):
            return True
        user = actor_user(actor)
        if user is not None and order.user_id == user.pk:
            return True
        email = (guest_email or "").strip().lower()
        return bool(email) and order.guest_email.lower() == email

    def get_order(self, order_id: Any, actor=None, *, guest_email: Optional[str] = None) -> Order:
        order = self.orders.get(order_id)
        if not self.can_view(order, actor, guest_email):
            raise NotFoundError(f"Order {order_id} not found.", detail={"order_id": str(order_id)})
        return order

    def list_orders(self, actor=None, *, guest_email: Optional[str] = None) -> QuerySet:
        if _is_staff(actor):
            qs = self.orders.all()
        elif actor_user(actor) is not None:
            qs = self.orders.for_user(actor)
        elif (guest_email or "").strip():
            qs = self.orders.for_guest(guest_email)
        else:
            raise ValidationError("Sign in or provide a guest email.", code="missing_identity")
        return qs.order_by("-created_at", "-id")

    # ----------------------------
    # customer action
    # ----------------------------

    def pay(self, order_id: Any, actor=None, *, guest_email: Optional[str] = None) -> TransitionResult:
        order = self.get_order(order_id, actor, guest_email=guest_email)
        return self.transitions.transition(
            order.pk,
            wf.PAID,
            actor,
            source=OrderTimelineEvent.API,
        )
